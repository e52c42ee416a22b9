"""HTTP surface and process settings for the agent execution core."""
