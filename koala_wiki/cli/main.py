#!/usr/bin/env python3
"""
koala-wiki command-line client.

Usage:
    koala-wiki [--api URL] [--debug] <command> [args]
    python -m koala_wiki.cli pages --tag python
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Awaitable, Callable, Dict, Optional

from dotenv import load_dotenv
from prompt_toolkit import PromptSession

from koala_wiki.app import WikiApp
from koala_wiki.guards import ADMIN_ROLES, Access, require_auth
from koala_wiki.state.drafts import draft_key
from .printer import Printer

logger = logging.getLogger("koala_wiki.cli")

EDITOR_HELP = (
    "Editor commands: :title <text>  :body  :tag <name>  :untag <name>  "
    ":show  :save  :discard  :submit  :quit"
)

Handler = Callable[[WikiApp, argparse.Namespace, Printer], Awaitable[int]]


async def _ask(prompt: str, *, password: bool = False, default: str = "") -> str:
    session: PromptSession[str] = PromptSession()
    return (await session.prompt_async(prompt, is_password=password, default=default)).strip()


async def cmd_login(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    email = args.email or await _ask("Email: ")
    password = await _ask("Password: ", password=True)
    result = await app.auth.login(email, password)
    return 0 if result.ok else 1


async def cmd_register(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    nickname = args.nickname or await _ask("Nickname: ")
    email = args.email or await _ask("Email: ")
    password = await _ask("Password: ", password=True)
    result = await app.auth.register(nickname, email, password)
    for err in result.field_errors:
        printer.error(str(err))
    return 0 if result.ok else 1


async def cmd_logout(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    await app.auth.logout()
    return 0


async def cmd_whoami(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    user = await app.auth.verify()
    if user is None:
        printer.info("Not logged in")
        return 1
    printer.user(user)
    return 0


async def cmd_profile(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    if await require_auth(app.session, app.navigator) != Access.ALLOW:
        printer.error("Log in first")
        return 1
    current = app.session.user
    nickname = args.nickname or (current.nickname if current else "")
    result = await app.users.update_profile(nickname=nickname, bio=args.bio, avatar_url=args.avatar)
    return 0 if result.ok else 1


async def cmd_pages(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    filters = app.search_store.filters
    status = args.status or filters.status
    result = await app.pages.list_pages(
        status=None if status == "all" else status,
        search=args.search,
        tag=args.tag,
        author=args.author or filters.author,
        limit=args.limit,
        offset=args.offset,
    )
    if not result.ok or result.data is None:
        printer.error(result.error.message if result.error else "Could not load pages")
        return 1
    printer.pages(result.data.pages, total=result.data.total)
    if result.data.hasMore:
        printer.info(f"More results: --offset {args.offset + args.limit}")
    return 0


async def cmd_popular(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    result = await app.pages.popular_pages(args.limit)
    if not result.ok:
        printer.error(result.error.message if result.error else "Could not load pages")
        return 1
    printer.pages(result.data or [], title="Popular pages")
    return 0


async def cmd_show(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    page, comments = await asyncio.gather(app.pages.get_page(args.page_id), app.comments.list_for_page(args.page_id))
    if page.not_found:
        printer.error("Page not found")
        return 1
    if not page.ok or page.data is None:
        printer.error(page.error.message if page.error else "Could not load the page")
        return 1
    printer.page(page.data)
    if comments.ok:
        printer.comments(comments.data or [])
    return 0


async def cmd_history(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    result = await app.pages.history(args.page_id)
    if not result.ok:
        printer.error(result.error.message if result.error else "Could not load the history")
        return 1
    printer.history(result.data or [])
    return 0


async def cmd_delete(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    if not args.yes:
        answer = await _ask(f"Delete page {args.page_id}? [y/N] ")
        if answer.lower() not in ("y", "yes"):
            return 1
    result = await app.pages.delete(args.page_id)
    return 0 if result.ok else 1


async def cmd_search(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    query = " ".join(args.query)
    result = await app.search.search(query, args.type, args.limit)
    if result.status == "idle":
        suggestions = await app.search.suggestions(query)
        printer.info("Enter at least 3 characters to search")
        if suggestions.ok and suggestions.data:
            printer.info("Suggestions: " + ", ".join(suggestions.data))
        return 1
    if not result.ok or result.data is None:
        printer.error(result.error.message if result.error else "Search failed")
        return 1
    if result.data.pages is not None:
        printer.pages(result.data.pages, title=f"Pages matching '{query}'")
    if result.data.users is not None:
        printer.users(result.data.users, title=f"Users matching '{query}'")
    return 0


async def cmd_recent(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    if args.clear:
        await app.search_store.clear_recent_searches()
        return 0
    for q in app.search_store.recent_searches:
        printer.console.print(q)
    return 0


async def cmd_tags(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    result = await app.search.popular_tags(args.limit)
    if not result.ok:
        printer.error(result.error.message if result.error else "Could not load tags")
        return 1
    printer.tags(result.data or [])
    return 0


async def cmd_comment(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    if await require_auth(app.session, app.navigator) != Access.ALLOW:
        printer.error("Log in to comment")
        return 1
    if args.delete:
        result = await app.comments.delete(args.page_id, args.delete)
    elif args.edit:
        result = await app.comments.update(args.page_id, args.edit, " ".join(args.text))
    else:
        result = await app.comments.create(args.page_id, " ".join(args.text))
    return 0 if result.ok else 1


async def _read_body(initial: str) -> str:
    session: PromptSession[str] = PromptSession(multiline=True)
    print("(Esc then Enter to finish)")
    return await session.prompt_async("body> ", default=initial)


async def _edit(app: WikiApp, page_id: Optional[str], printer: Printer) -> int:
    async with app.editor(page_id) as editor:
        if not editor.mounted:
            printer.error(f"Cannot open the editor (redirected to {app.navigator.current})")
            return 1
        printer.info(EDITOR_HELP)
        session: PromptSession[str] = PromptSession()
        while True:
            try:
                line = (await session.prompt_async("edit> ")).strip()
            except (EOFError, KeyboardInterrupt):
                break
            cmd, _, rest = line.partition(" ")
            if cmd == ":title":
                editor.set_title(rest)
            elif cmd == ":body":
                editor.set_content(await _read_body(editor.content))
            elif cmd == ":tag":
                editor.add_tag(rest)
            elif cmd == ":untag":
                editor.remove_tag(rest.strip())
            elif cmd == ":show":
                printer.console.print(f"[bold]{editor.title or '(untitled)'}[/bold] {' '.join('#' + t for t in editor.tags)}")
                printer.console.print(editor.content)
                printer.info("unsaved changes" if editor.is_dirty else "no changes")
            elif cmd == ":save":
                await editor.save_now()
            elif cmd == ":discard":
                await editor.discard()
            elif cmd == ":submit":
                result = await editor.submit()
                if result.ok:
                    return 0
            elif cmd in (":quit", ":q"):
                break
            elif line:
                printer.info(EDITOR_HELP)
    return 0


async def cmd_new(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    return await _edit(app, None, printer)


async def cmd_edit(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    return await _edit(app, args.page_id, printer)


async def cmd_drafts(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    if args.discard:
        key = args.discard if args.discard == draft_key() or args.discard.startswith("page:") else draft_key(args.discard)
        if not await app.drafts.delete_draft(key):
            printer.error(f"No draft for {key}")
            return 1
        printer.info(f"Discarded {key}")
        return 0
    printer.drafts(app.drafts.list_drafts())
    return 0


async def cmd_upload(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    result = await app.uploads.upload_image(args.path)
    if result.ok and result.data is not None:
        printer.console.print(result.data.url)
        return 0
    return 1


async def cmd_uploads(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    if args.delete:
        result = await app.uploads.delete(args.delete)
        return 0 if result.ok else 1
    history = await app.uploads.history(args.limit, args.offset)
    if not history.ok:
        printer.error(history.error.message if history.error else "Log in to see your uploads")
        return 1
    printer.uploads(history.data or [])
    return 0


async def cmd_theme(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    if args.theme:
        await app.ui.set_theme(args.theme)
    printer.info(f"theme: {app.ui.theme}")
    return 0


async def cmd_admin(app: WikiApp, args: argparse.Namespace, printer: Printer) -> int:
    if await require_auth(app.session, app.navigator, roles=ADMIN_ROLES) != Access.ALLOW:
        printer.error("Admin or moderator role required")
        return 1

    action = args.admin_command
    if action == "users":
        users = await app.admin.users(role=args.role, search=args.search, limit=args.limit, offset=args.offset)
        if users.ok and users.data is not None:
            printer.users(users.data.users, title=f"Users ({users.data.total})")
            return 0
    elif action == "role":
        result = await app.admin.change_role(args.user_id, args.role)
        if result.ok:
            users = await app.admin.users()
            if users.ok and users.data is not None:
                printer.users([u for u in users.data.users if u.id == args.user_id], title="Updated")
            return 0
        return 1
    elif action == "pending":
        pending = await app.admin.pending_pages(args.limit, args.offset)
        if pending.ok:
            printer.pages(pending.data or [], title="Pending approval")
            return 0
    elif action == "approve":
        return 0 if (await app.pages.approve(args.page_id)).ok else 1
    elif action == "stats":
        stats = await app.admin.stats()
        if stats.ok and stats.data is not None:
            printer.stats(stats.data)
            return 0
    elif action == "settings":
        if args.set:
            pairs = dict(item.split("=", 1) for item in args.set if "=" in item)
            return 0 if (await app.admin.update_settings(pairs)).ok else 1
        settings = await app.admin.settings()
        if settings.ok:
            printer.settings(settings.data or {})
            return 0
    elif action == "logs":
        logs = await app.admin.logs(action=args.action, limit=args.limit, offset=args.offset)
        if logs.ok:
            printer.logs(logs.data or [])
            return 0
    printer.error("Request failed")
    return 1


COMMANDS: Dict[str, Handler] = {
    "login": cmd_login,
    "register": cmd_register,
    "logout": cmd_logout,
    "whoami": cmd_whoami,
    "profile": cmd_profile,
    "pages": cmd_pages,
    "popular": cmd_popular,
    "show": cmd_show,
    "history": cmd_history,
    "delete": cmd_delete,
    "search": cmd_search,
    "recent": cmd_recent,
    "tags": cmd_tags,
    "comment": cmd_comment,
    "new": cmd_new,
    "edit": cmd_edit,
    "drafts": cmd_drafts,
    "upload": cmd_upload,
    "uploads": cmd_uploads,
    "theme": cmd_theme,
    "admin": cmd_admin,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="koala-wiki", description="Koala Wiki command-line client")
    parser.add_argument("--api", default=None, help="API base URL (default: KOALA_WIKI_API_URL or config)")
    parser.add_argument("--data-dir", default=None, help="Directory for session, drafts and preferences")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("login", help="Log in")
    p.add_argument("--email")
    p = sub.add_parser("register", help="Create an account")
    p.add_argument("--nickname")
    p.add_argument("--email")
    sub.add_parser("logout", help="Log out")
    sub.add_parser("whoami", help="Show the logged-in user")
    p = sub.add_parser("profile", help="Update your profile")
    p.add_argument("--nickname")
    p.add_argument("--bio")
    p.add_argument("--avatar")

    p = sub.add_parser("pages", help="List pages")
    p.add_argument("--status", choices=["all", "published", "draft"])
    p.add_argument("--search")
    p.add_argument("--tag")
    p.add_argument("--author")
    p.add_argument("--limit", type=int, default=20)
    p.add_argument("--offset", type=int, default=0)
    p = sub.add_parser("popular", help="Most viewed pages")
    p.add_argument("--limit", type=int, default=10)
    p = sub.add_parser("show", help="Show a page and its comments")
    p.add_argument("page_id")
    p = sub.add_parser("history", help="Edit history of a page")
    p.add_argument("page_id")
    p = sub.add_parser("delete", help="Delete a page")
    p.add_argument("page_id")
    p.add_argument("-y", "--yes", action="store_true")

    p = sub.add_parser("search", help="Search pages and users")
    p.add_argument("query", nargs="+")
    p.add_argument("--type", choices=["all", "pages", "users"], default="all")
    p.add_argument("--limit", type=int, default=20)
    p = sub.add_parser("recent", help="Recent searches")
    p.add_argument("--clear", action="store_true")
    p = sub.add_parser("tags", help="Popular tags")
    p.add_argument("--limit", type=int, default=20)

    p = sub.add_parser("comment", help="Post, edit or delete a comment")
    p.add_argument("page_id")
    p.add_argument("text", nargs="*")
    p.add_argument("--edit", metavar="COMMENT_ID")
    p.add_argument("--delete", metavar="COMMENT_ID")

    sub.add_parser("new", help="Write a new page")
    p = sub.add_parser("edit", help="Edit a page")
    p.add_argument("page_id")
    p = sub.add_parser("drafts", help="List or discard local drafts")
    p.add_argument("--discard", metavar="KEY_OR_PAGE_ID")

    p = sub.add_parser("upload", help="Upload an image")
    p.add_argument("path")
    p = sub.add_parser("uploads", help="Your uploaded files")
    p.add_argument("--delete", metavar="FILE_NAME")
    p.add_argument("--limit", type=int, default=20)
    p.add_argument("--offset", type=int, default=0)

    p = sub.add_parser("theme", help="Show or set the theme")
    p.add_argument("theme", nargs="?", choices=["light", "dark"])

    admin = sub.add_parser("admin", help="Admin dashboard")
    asub = admin.add_subparsers(dest="admin_command", required=True)
    p = asub.add_parser("users")
    p.add_argument("--role", choices=["contributor", "editor", "moderator", "admin"])
    p.add_argument("--search")
    p.add_argument("--limit", type=int, default=20)
    p.add_argument("--offset", type=int, default=0)
    p = asub.add_parser("role")
    p.add_argument("user_id")
    p.add_argument("role", choices=["contributor", "editor", "moderator", "admin"])
    p = asub.add_parser("pending")
    p.add_argument("--limit", type=int, default=20)
    p.add_argument("--offset", type=int, default=0)
    p = asub.add_parser("approve")
    p.add_argument("page_id")
    asub.add_parser("stats")
    p = asub.add_parser("settings")
    p.add_argument("--set", nargs="*", metavar="KEY=VALUE")
    p = asub.add_parser("logs")
    p.add_argument("--action")
    p.add_argument("--limit", type=int, default=50)
    p.add_argument("--offset", type=int, default=0)
    return parser


async def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    printer = Printer()
    app = WikiApp(data_dir=args.data_dir, base_url=args.api)
    app.ui.on_toast = printer.toast
    async with app:
        return await COMMANDS[args.command](app, args, printer)


def run() -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        code = asyncio.run(main())
    except KeyboardInterrupt:
        code = 130
    except Exception:
        logger.exception("fatal error")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    run()
