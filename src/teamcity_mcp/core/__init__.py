"""Core building blocks: locators, resilience, pagination, hierarchy traversal."""
