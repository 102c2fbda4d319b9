"""Parallel and JIT-compiled rendering backends."""
