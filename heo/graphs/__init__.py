"""LangGraph pipelines."""

from heo.graphs.hypothesis_pipeline_graph import Pipeline, PipelineResult, PipelineStage

__all__ = ["Pipeline", "PipelineResult", "PipelineStage"]
