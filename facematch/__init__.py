"""Face identity clustering and matching engine."""
