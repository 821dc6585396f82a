"""
Voice Creation - talk through a web app idea, approve the spec, watch it build.

Glues a hosted speech agent, a code-generation model and a locally spawned
dev server into one conversational pipeline:

1. Ideation - the speech agent interviews the user
2. Prompt review - the agent reads back a YAML spec for approval
3. Code generation - the approved spec becomes files on disk and a live preview
"""

__version__ = "1.0.0"
