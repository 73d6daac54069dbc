"""HTTP surface and services of the answer-synchronization engine."""
