"""UI package for the form builder."""

from .PreviewWidget import FormPreview

__all__ = ["FormPreview"]
