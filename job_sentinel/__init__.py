"""Job Sentinel: watch career pages and alert on new postings."""

__version__ = "0.1.0"
