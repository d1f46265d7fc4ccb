__version__ = "1.0.0"
__description__ = "jamap : JSON:API resource document encoding and decoding"
