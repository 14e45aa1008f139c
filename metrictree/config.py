import os
from typing import Optional


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.environ.get(name)
    return int(value) if value not in (None, '') else default


class Config:
    # Logging
    LOG_LEVEL = os.environ.get('METRICTREE_LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('METRICTREE_LOG_FILE')

    # Benchmark runs; no seed means a fresh random run each time
    SEED = _env_int('METRICTREE_SEED', None)
    QUERY_COUNT = _env_int('METRICTREE_QUERY_COUNT', 100)

    # Integers in [-INT_DATA_RADIUS, INT_DATA_RADIUS], search radius below INT_DATA_RADIUS // 1000
    INT_DATA_RADIUS = _env_int('METRICTREE_INT_DATA_RADIUS', 100000)

    # Random uppercase strings under edit distance
    STRING_COUNT = _env_int('METRICTREE_STRING_COUNT', 20000)
    STRING_MAX_LENGTH = _env_int('METRICTREE_STRING_MAX_LENGTH', 20)
    STRING_RADIUS = _env_int('METRICTREE_STRING_RADIUS', 3)

    # Random perceptual hashes under Hamming distance
    PHASH_COUNT = _env_int('METRICTREE_PHASH_COUNT', 10000)
    PHASH_SIZE = _env_int('METRICTREE_PHASH_SIZE', 8)
    PHASH_RADIUS = _env_int('METRICTREE_PHASH_RADIUS', 10)

    # The CLI prints the whole tree only below this many elements
    SHOW_TREE_LIMIT = _env_int('METRICTREE_SHOW_TREE_LIMIT', 100)


class DevelopmentConfig(Config):
    LOG_LEVEL = os.environ.get('METRICTREE_LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    pass


class TestingConfig(Config):
    LOG_LEVEL = 'WARNING'
    SEED = 1234
    QUERY_COUNT = 20
    INT_DATA_RADIUS = 2000
    STRING_COUNT = 300
    STRING_MAX_LENGTH = 6
    STRING_RADIUS = 2
    PHASH_COUNT = 300
    PHASH_SIZE = 4
    PHASH_RADIUS = 3


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': ProductionConfig
}
