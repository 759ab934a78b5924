from __future__ import annotations
from dataclasses import dataclass


USER_NAMES: tuple[str, ...] = (
    "Alice", "Bob", "Charlie", "Dave", "Eve", "Frank", "Grace", "Heidi", "Ivan", "Judy",
    "Mallory", "Nia", "Oscar", "Peggy", "Rupert", "Sybil", "Ted", "Victor", "Walter",
)

USER_AVATARS: tuple[str, ...] = ("👨‍💻", "👩‍💻", "👨‍🎓", "👩‍🔬", "👨‍🚀", "🦸‍♀️", "🧙‍♂️", "🧛‍♀️", "🤖", "👽")


@dataclass(frozen=True)
class PromptTemplate:
    text: str
    tokens: int

    @property
    def prompt_tokens(self) -> int:
        return self.tokens // 2 + 10

    @property
    def output_tokens(self) -> int:
        return self.tokens

    @classmethod
    def builtin(cls) -> list[PromptTemplate]:
        return [
            cls("Write a Python script to scrape a website", 300),
            cls("Explain Quantum Entanglement like I'm 5", 150),
            cls("Generate a SQL query for users table", 80),
            cls("Write a haiku about GPUs", 40),
            cls("Debug this React useEffect hook...", 250),
            cls("Translate 'Hello World' to French", 20),
            cls("Summarize the history of Rome", 500),
            cls("What is the capital of Australia?", 15),
            cls("Write a bedtime story about a robot", 400),
            cls("Convert JSON to CSV in pandas", 120),
            cls("Explain Transformer architecture", 600),
            cls("Recipe for chocolate cake", 200),
            cls("Who won the 1994 World Cup?", 30),
            cls("Implement QuickSort in Rust", 350),
            cls("Define 'closure' in JavaScript", 100),
            cls("Analyze the sentiment of this text", 60),
            cls("Create a marketing plan for coffee", 450),
            cls("Refactor this legacy Java code", 300),
            cls("Explain how DNS works", 200),
            cls("Generate a unit test for login", 180),
        ]
