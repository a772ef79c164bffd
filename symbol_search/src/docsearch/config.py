MAX_RESULTS: int = 50          # references delivered per query
DEBOUNCE_SECONDS: float = 0.15 # quiet interval before an uncached shard is fetched
LOAD_TIMEOUT_SECONDS: float = 5.0

# Speculatively warm the shards for the letters next to the current one
PREFETCH_NEIGHBORS: bool = False

# /* ~~~ partitioning: a..z plus one bucket for everything else ~~~ */
CATCH_ALL_SHARD: str = "_"

# /* ~~~ on-disk layout ~~~ */
SHARD_FILE_TEMPLATE: str = "all_{name}.js"
CATCH_ALL_FILE_NAME: str = "other"
MANIFEST_NAME: str = "manifest.json"
FORMAT_TAG: str = "docsearch-shards/1"
SHARD_PREAMBLE: str = "var searchData="

# Progress logging (set DOCSEARCH_VERBOSE=1 to enable)
VERBOSE_ENV: str = "DOCSEARCH_VERBOSE"
