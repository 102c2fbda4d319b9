"""Complex-plane geometry and iteration kernels."""
