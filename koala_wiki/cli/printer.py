"""
Terminal rendering with Rich.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from koala_wiki.models import AdminLog, AdminStats, Comment, EditHistory, PublicUser, Tag, UploadHistory, User, WikiPage
from koala_wiki.state.drafts import Draft
from koala_wiki.state.ui import Toast
from koala_wiki.validation import format_file_size

_TOAST_STYLES = {
    "success": ("✓", "green"),
    "error": ("✗", "red"),
    "warning": ("!", "yellow"),
    "info": ("●", "cyan"),
}


def _date(value: Optional[str]) -> str:
    return (value or "")[:10]


def _author(user: Optional[PublicUser], fallback: str = "") -> str:
    return user.nickname if user is not None else fallback


@dataclass
class Printer:
    console: Console = field(default_factory=Console)

    def toast(self, toast: Toast) -> None:
        icon, color = _TOAST_STYLES.get(toast.type, ("●", "white"))
        line = Text()
        line.append(f"{icon} {toast.title}", style=f"bold {color}")
        if toast.description:
            line.append(f"  {toast.description}", style=color)
        self.console.print(line)

    def info(self, message: str) -> None:
        self.console.print(f"[dim]{message}[/dim]")

    def error(self, message: str) -> None:
        self.console.print(f"[red]Error: {message}[/red]")

    def user(self, user: User) -> None:
        body = Text()
        body.append(user.nickname, style="bold cyan")
        body.append(f"  ({user.role.value})\n", style="dim")
        if user.email:
            body.append(f"{user.email}\n")
        if user.bio:
            body.append(f"{user.bio}\n")
        counts = []
        if user.pageCount is not None:
            counts.append(f"{user.pageCount} pages")
        if user.commentCount is not None:
            counts.append(f"{user.commentCount} comments")
        if counts:
            body.append(" │ ".join(counts), style="dim")
        self.console.print(Panel(body, border_style="cyan"))

    def pages(self, pages: Sequence[WikiPage], *, title: str = "Pages", total: Optional[int] = None) -> None:
        table = Table(title=title if total is None else f"{title} ({total})")
        table.add_column("ID", style="dim")
        table.add_column("Title", style="bold")
        table.add_column("Author")
        table.add_column("Tags")
        table.add_column("Views", justify="right")
        table.add_column("Updated")
        for p in pages:
            table.add_row(
                p.id,
                p.title,
                _author(p.author, p.authorId),
                ", ".join(p.tags),
                str(p.viewCount),
                _date(p.updatedAt or p.createdAt),
            )
        self.console.print(table)

    def page(self, page: WikiPage) -> None:
        header = Text()
        header.append(page.title, style="bold cyan")
        header.append(f"\nby {_author(page.author, page.authorId)} · {_date(page.updatedAt or page.createdAt)}", style="dim")
        header.append(f" · {page.viewCount} views · {page.status.value}", style="dim")
        if page.tags:
            header.append("\n" + " ".join(f"#{t}" for t in page.tags), style="magenta")
        self.console.print(Panel(header, border_style="cyan"))
        self.console.print(Markdown(page.content))

    def comments(self, comments: Iterable[Comment]) -> None:
        items = list(comments)
        if not items:
            self.info("No comments yet")
            return
        for c in items:
            self.console.print(f"[bold]{_author(c.author, c.authorId)}[/bold] [dim]{_date(c.createdAt)} ({c.id})[/dim]")
            self.console.print(c.content)
            self.console.print()

    def history(self, entries: Iterable[EditHistory]) -> None:
        table = Table(title="Edit history")
        table.add_column("When")
        table.add_column("Editor")
        table.add_column("Title")
        for h in entries:
            table.add_row(_date(h.editedAt), _author(h.editor, h.editorId), h.titleAfter or h.titleBefore or "")
        self.console.print(table)

    def tags(self, tags: Iterable[Tag]) -> None:
        self.console.print(" ".join(f"[magenta]#{t.tag}[/magenta][dim]({t.count})[/dim]" for t in tags))

    def users(self, users: Iterable[PublicUser], *, title: str = "Users") -> None:
        table = Table(title=title)
        table.add_column("ID", style="dim")
        table.add_column("Nickname", style="bold")
        table.add_column("Role")
        table.add_column("Joined")
        for u in users:
            table.add_row(u.id, u.nickname, u.role.value, _date(u.createdAt))
        self.console.print(table)

    def drafts(self, drafts: List[Tuple[str, Draft]]) -> None:
        if not drafts:
            self.info("No saved drafts")
            return
        table = Table(title="Drafts")
        table.add_column("Key", style="dim")
        table.add_column("Title", style="bold")
        table.add_column("Tags")
        table.add_column("Saved")
        for key, d in drafts:
            table.add_row(key, d.title or "(untitled)", ", ".join(d.tags), d.updatedAt)
        self.console.print(table)

    def uploads(self, uploads: Iterable[UploadHistory]) -> None:
        table = Table(title="Uploads")
        table.add_column("File", style="bold")
        table.add_column("Original")
        table.add_column("Size", justify="right")
        table.add_column("URL", style="dim")
        for u in uploads:
            table.add_row(u.fileName, u.originalName, format_file_size(u.fileSize), u.url)
        self.console.print(table)

    def stats(self, stats: AdminStats) -> None:
        table = Table(title="Site statistics", show_header=False)
        table.add_column("Metric")
        table.add_column("Value", justify="right")
        table.add_row("Users", f"{stats.totalUsers} (+{stats.newUsersThisMonth} this month)")
        table.add_row("Pages", f"{stats.totalPages} (+{stats.newPagesThisMonth} this month)")
        table.add_row("Comments", f"{stats.totalComments} (+{stats.commentsThisWeek} this week)")
        table.add_row("Views", f"{stats.totalViews} (+{stats.viewsThisWeek} this week)")
        self.console.print(table)
        if stats.topPages:
            top = Table(title="Top pages")
            top.add_column("Title")
            top.add_column("Views", justify="right")
            for p in stats.topPages:
                top.add_row(p.title, str(p.viewCount))
            self.console.print(top)

    def logs(self, logs: Iterable[AdminLog]) -> None:
        table = Table(title="Admin log")
        table.add_column("When")
        table.add_column("Admin")
        table.add_column("Action", style="bold")
        table.add_column("Target")
        table.add_column("Change", style="dim")
        for x in logs:
            change = f"{x.oldValue or ''} → {x.newValue or ''}" if (x.oldValue or x.newValue) else ""
            table.add_row(_date(x.createdAt), x.adminNickname, x.action, f"{x.targetType}:{x.targetId}", change)
        self.console.print(table)

    def settings(self, settings: dict) -> None:
        table = Table(title="Settings")
        table.add_column("Key", style="bold")
        table.add_column("Value")
        for k, v in sorted(settings.items()):
            table.add_row(k, v)
        self.console.print(table)
