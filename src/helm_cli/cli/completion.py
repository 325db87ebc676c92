"""Shell completion and markdown documentation generated from the command tree."""

from __future__ import annotations

from pathlib import Path

from helm_cli.cli.router import PERSISTENT_FLAGS, CommandNode


def _flag_words(node: CommandNode) -> list[str]:
    words = [f"--{f.name}" for f in (*PERSISTENT_FLAGS, *node.flags)]
    words += [f"-{f.short}" for f in node.flags if f.short]
    return words


def bash_completion(root: CommandNode) -> str:
    """Return a bash completion script for *root* and all its descendants.

    Completion walks the typed words, descending into sub-commands while
    they match, then offers the matched node's children and flags.
    """
    cases: list[str] = []
    for path, node in root.walk():
        if node.hidden:
            continue
        key = " ".join(path)
        words = [c.name for c in node.children if not c.hidden] + _flag_words(node)
        cases.append(f'        "{key}") words="{" ".join(words)}" ;;')

    fn = f"__{root.name}_complete"
    return "\n".join(
        [
            f"# bash completion for {root.name}",
            "",
            f"{fn}()",
            "{",
            '    local cur="${COMP_WORDS[COMP_CWORD]}"',
            '    local path="" word candidate words',
            "    for word in \"${COMP_WORDS[@]:1:COMP_CWORD-1}\"; do",
            "        [[ $word == -* ]] && continue",
            '        candidate="${path:+$path }$word"',
            '        case "$candidate" in',
            *[f'            "{" ".join(p)}") path="$candidate" ;;' for p, n in root.walk() if p and n.children],
            "        esac",
            "    done",
            '    case "$path" in',
            *cases,
            '        *) words="" ;;',
            "    esac",
            '    COMPREPLY=( $(compgen -W "$words" -- "$cur") )',
            "}",
            "",
            f"complete -o default -F {fn} {root.name}",
            "",
        ],
    )


def _markdown_page(root: CommandNode, path: tuple[str, ...], node: CommandNode) -> str:
    full = " ".join((root.name, *path))
    lines = [f"## {full}", "", node.short_help, ""]
    if node.long_help and node.long_help != node.short_help:
        lines += ["### Synopsis", "", node.long_help.rstrip(), ""]
    if node.runnable:
        usage = f"{full} [flags] {node.arg_usage()}".rstrip()
        lines += ["```", usage, "```", ""]
    if node.deprecated:
        lines += [f"**Deprecated:** {node.deprecated.strip()}", ""]
    if node.flags:
        lines += ["### Options", "", "```"]
        lines += [f"  --{f.name:<22} {f.help}" for f in node.flags]
        lines += ["```", ""]
    lines += ["### Options inherited from parent commands", "", "```"]
    lines += [f"  --{f.name:<22} {f.help}" for f in PERSISTENT_FLAGS]
    lines += ["```", ""]
    visible = [c for c in node.children if not c.hidden]
    if path or visible:
        lines += ["### SEE ALSO", ""]
        if path:
            parent = " ".join((root.name, *path[:-1]))
            lines.append(f"* [{parent}]({parent.replace(' ', '_')}.md)")
        for child in visible:
            name = " ".join((full, child.name))
            lines.append(f"* [{name}]({name.replace(' ', '_')}.md)\t - {child.short_help}")
        lines.append("")
    return "\n".join(lines)


def write_markdown_docs(root: CommandNode, directory: Path) -> list[Path]:
    """Write one markdown page per visible built-in command into *directory*."""
    directory.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for path, node in root.walk():
        if node.hidden or node.plugin is not None:
            continue
        target = directory / f"{'_'.join((root.name, *path))}.md"
        target.write_text(_markdown_page(root, path, node), encoding="utf-8")
        written.append(target)
    return written
