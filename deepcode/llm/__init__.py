"""Hosted model provider adapters."""

from .gateway import GenerationContext, LLMRequest, ModelError, ModelGateway, select_provider

__all__ = ["GenerationContext", "LLMRequest", "ModelError", "ModelGateway", "select_provider"]
