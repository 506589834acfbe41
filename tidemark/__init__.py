"""Telemetry collector for pushed LLM usage and polled database metrics."""
