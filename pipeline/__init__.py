"""
Pipeline Module - Analyze Product Request Flow

Stages:
- request_parser: decode and validate the inbound body
- prompts: build the reseller prompt and Gemini payload
- normalizer: turn the model's reply into an AnalysisResult

Usage:
    from pipeline import ResponseNormalizer
    result = await ResponseNormalizer(config).normalize(raw_text, store_price, condition)
"""

from .request_parser import AnalysisRequest, decode_body, parse_analysis_request
from .prompts import build_gemini_payload, get_system_prompt
from .normalizer import AnalysisResult, ModelReply, ResponseNormalizer

__all__ = [
    'AnalysisRequest',
    'decode_body',
    'parse_analysis_request',
    'build_gemini_payload',
    'get_system_prompt',
    'AnalysisResult',
    'ModelReply',
    'ResponseNormalizer',
]
