"""
Batch ingestion: streaming readers, the batched writer and the import passes.
"""
