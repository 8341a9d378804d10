"""Tutoring platform backend.

Web API for teachers: students, assignments, answer keys, worksheet
analysis and practice question generation, on top of a hosted backend
(auth, tables, object storage) and an OpenAI-compatible LLM.
"""

__version__ = "0.1.0"
