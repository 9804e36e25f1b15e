"""Application layer: lifecycle services, realtime fan-out and collaborator interfaces."""
