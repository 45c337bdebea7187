"""Game domain services: board building, win lines, turns and room state.

This package contains pure domain logic. The participant client, the sync
adapter and the HTTP routes import it; nothing in here touches the database
or the network.
"""
