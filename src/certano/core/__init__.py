"""Core quiz logic.

Modules:
- questions: question model and option-shape normalization
- grader: per-question correctness
- attempt: attempt records and scoring
- quiz_builder: quiz configuration and question selection
- session: quiz session sequencer
- timers: cancellable timer handles
- stats: learning statistics store
- connectivity: online/offline state
- sync_queue: offline-first result delivery
- question_cache: offline question snapshot
- context: injected stores for one process
"""

__all__ = [
    "questions",
    "grader",
    "attempt",
    "quiz_builder",
    "session",
    "timers",
    "stats",
    "connectivity",
    "sync_queue",
    "question_cache",
    "context",
]
