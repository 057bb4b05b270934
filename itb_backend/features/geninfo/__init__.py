"""ComfyUI graph resolution."""
