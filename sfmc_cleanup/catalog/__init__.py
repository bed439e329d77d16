"""Remote resource catalog: cached folder tree and data extension lookups.

Classes:
    CacheStorage: Disk tier of the snapshot cache
    FolderTreeCache: Memory tier with fetch coalescing
    FolderResolver: Path and name resolution over the folder tree
    DataExtensionService: Data extension listing and details
    SingleFlight: Concurrent call coalescing primitive
"""

__all__ = [
    "cache",
    "data_extensions",
    "folders",
    "singleflight",
]
