"""
Query pipeline.

  embed → retrieve → assemble (context_assembler.py)
        → prompt (prompts/answer_generator.py) → generate

Orchestrated by: orchestrator.py
"""
