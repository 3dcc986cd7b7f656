"""Permission-mediated file tools for autonomous agents."""
