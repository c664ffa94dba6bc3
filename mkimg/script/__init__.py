"""Configuration script support: host bindings and the Lua runtime."""
