"""Descriptor extractor implementations.

The InsightFace adapter lives in ``faceid.services.recognition.insight_face`` and
is imported on demand, since it needs the optional ``recognition`` extra.
"""
