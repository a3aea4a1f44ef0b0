"""Dialog orchestration: flows, steps and the engine that runs them."""
