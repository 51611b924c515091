"""Mapping of fenced code info strings to Notion code block languages."""

# Languages accepted by the Notion API for code blocks
NOTION_LANGUAGES = frozenset({
    "abap", "arduino", "bash", "basic", "c", "clojure", "coffeescript", "c++",
    "c#", "css", "dart", "diff", "docker", "elixir", "elm", "erlang", "flow",
    "fortran", "f#", "gherkin", "glsl", "go", "graphql", "groovy", "haskell",
    "html", "java", "javascript", "json", "julia", "kotlin", "latex", "less",
    "lisp", "livescript", "lua", "makefile", "markdown", "markup", "matlab",
    "mermaid", "nix", "objective-c", "ocaml", "pascal", "perl", "php",
    "plain text", "powershell", "prolog", "protobuf", "python", "r", "reason",
    "ruby", "rust", "sass", "scala", "scheme", "scss", "shell", "sql", "swift",
    "typescript", "vb.net", "verilog", "vhdl", "visual basic", "webassembly",
    "xml", "yaml", "java/c/c++/c#",
})

PLAIN_TEXT = "plain text"

# Common info strings that differ from Notion's names
LANGUAGE_ALIASES = {
    "sh": "shell",
    "zsh": "shell",
    "console": "shell",
    "shell-session": "shell",
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "jsx": "javascript",
    "node": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "rs": "rust",
    "rb": "ruby",
    "golang": "go",
    "cpp": "c++",
    "cxx": "c++",
    "cc": "c++",
    "h": "c",
    "csharp": "c#",
    "cs": "c#",
    "fsharp": "f#",
    "objc": "objective-c",
    "kt": "kotlin",
    "yml": "yaml",
    "md": "markdown",
    "dockerfile": "docker",
    "make": "makefile",
    "ps1": "powershell",
    "pwsh": "powershell",
    "proto": "protobuf",
    "tex": "latex",
    "hs": "haskell",
    "ex": "elixir",
    "exs": "elixir",
    "erl": "erlang",
    "clj": "clojure",
    "wasm": "webassembly",
    "vb": "visual basic",
    "text": PLAIN_TEXT,
    "txt": PLAIN_TEXT,
    "plaintext": PLAIN_TEXT,
    "": PLAIN_TEXT,
}


def notion_language(info: str) -> str:
    """Normalise a fenced code info string to a Notion language name.

    Only the first word of the info string counts (``python title=x.py`` is
    python). Unknown languages fall back to ``plain text``.

    Example:
        >>> notion_language("PY")
        'python'
        >>> notion_language("brainfuck")
        'plain text'
    """
    words = (info or "").strip().split()
    name = words[0].lower() if words else ""
    name = LANGUAGE_ALIASES.get(name, name)
    return name if name in NOTION_LANGUAGES else PLAIN_TEXT
