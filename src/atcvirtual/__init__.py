"""ATC Virtual - radio phraseology trainer with a simulated ATC.

The core lives in ``atcvirtual.services.atc``: flight phase registry,
frequency model, phase/frequency validation, prompt assembly, LLM
response parsing and ATIS synthesis.
"""

__version__ = "0.1.0"
