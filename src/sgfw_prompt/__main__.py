"""
Entry point for running sgfw_prompt as a module.

Allows running the prompt service via:
    python -m sgfw_prompt
"""

from sgfw_prompt.supervisor import main

if __name__ == "__main__":
    main()
