"""flexbuild - dependency classification and test runs for Flex projects."""

__version__ = "0.1.0"
