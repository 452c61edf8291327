# leafsync/decode/__init__.py

from .log_decoder import LeafDecoder
