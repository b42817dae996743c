"""
Pipeline - PDF receipt to JSON and batch orchestration.

Components:
- pdf_to_receipt: RawDocument -> ParsedReceipt (or inspect summary)
- orchestrator: single-file and directory runs with a batch report
"""

from .orchestrator import PipelineOrchestrator, run_batch, run_single

__all__ = [
    "PipelineOrchestrator",
    "run_batch",
    "run_single",
]
