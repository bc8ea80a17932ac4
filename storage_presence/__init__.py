"""
Storage presence service.

Tracks which storage backends hold each item's metadata and asset, and
derives item- and collection-level durability status from those facts.
"""
