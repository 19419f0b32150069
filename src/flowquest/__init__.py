"""FlowQuest: roleplay training sessions driven by an AI persona."""

__version__ = "0.1.0"
