"""IntakeGate HTTP service."""
