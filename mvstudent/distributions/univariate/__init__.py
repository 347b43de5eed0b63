"""Univariate distributions."""

from .student_t import StudentT

__all__ = ['StudentT']
