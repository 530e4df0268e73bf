"""UI utilities (validators, id generation, problem loading)."""

from .id_generator import generate_committee_id, generate_observer_id, generate_session_id

__all__ = ["generate_committee_id", "generate_observer_id", "generate_session_id"]
