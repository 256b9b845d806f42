"""Application services: toolchain invocation and the deploy pipeline."""
