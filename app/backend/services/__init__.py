"""
Services package for the blueprint extraction application.

Contains:
- pdf_service: PDF text extraction
- ai: LLM-powered knowledge extraction pipeline
"""

from .pdf_service import PDFService
from .ai import AIService

__all__ = ["PDFService", "AIService"]
