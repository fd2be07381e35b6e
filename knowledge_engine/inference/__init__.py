"""
Inference engine: ranked, explainable conclusions from the knowledge graph.
"""

from knowledge_engine.inference.engine import InferenceEngine, InferenceResult

__all__ = ["InferenceEngine", "InferenceResult"]
