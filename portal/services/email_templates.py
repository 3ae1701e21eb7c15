"""
Module: email_templates
Purpose: Subject lines and HTML bodies for every email the portal sends
Author: Portal Development Team
Date: 2024
"""

from html import escape
from typing import Any, Dict, List, Optional, Sequence, Tuple

from portal.core.config import settings
from portal.db.models import CashTransaction, Task, TaskReschedule, TaskUpdateProof
from portal.utils.formatting import format_inr, format_signed_inr, format_date

# (subject, html)
RenderedEmail = Tuple[str, str]

FOOTER = "This is an automated alert from the operations portal."


def _field(label: str, value: Any) -> str:
    return (
        f'<p style="margin: 0; color: #6b7280; font-size: 13px;">{escape(label)}</p>'
        f'<p style="margin: 4px 0 12px 0; font-weight: 600; font-size: 15px;">'
        f'{escape(str(value)) if value not in (None, "") else "&mdash;"}</p>'
    )


def _layout(
    heading: str,
    intro: str,
    fields: Sequence[Tuple[str, Any]],
    extra_html: str = "",
    background: str = "#f9fafb",
    heading_color: str = "#111827",
    action: Optional[Tuple[str, str]] = None,
    footer_note: str = ""
) -> str:
    """
    Shared card layout.

    ``intro`` and ``extra_html`` are trusted markup built by this module;
    every field value is escaped here.
    """
    card = "".join(_field(label, value) for label, value in fields)
    button = ""
    if action:
        label, path = action
        button = (
            f'<div style="margin-top: 20px;"><a href="{escape(settings.APP_URL + path)}" '
            f'style="display: inline-block; padding: 12px 24px; background: #2563eb; color: white; '
            f'text-decoration: none; border-radius: 8px;">{escape(label)}</a></div>'
        )

    return (
        "<!DOCTYPE html><html>"
        '<body style="font-family: Arial, sans-serif; color: #1f2937; margin: 0; padding: 0;">'
        f'<div style="max-width: 600px; margin: 0 auto; padding: 24px; background: {background};">'
        f'<h2 style="margin: 0 0 16px 0; color: {heading_color};">{escape(heading)}</h2>'
        f'<p style="margin: 0 0 16px 0;">{intro}</p>'
        '<div style="background: white; border-radius: 12px; padding: 20px; '
        'box-shadow: 0 1px 3px rgba(15, 23, 42, 0.08);">'
        f"{card}{extra_html}</div>"
        f"{button}"
        f'<p style="margin-top: 24px; font-size: 12px; color: #6b7280;">{escape(FOOTER + footer_note)}</p>'
        "</div></body></html>"
    )


def _purpose(transaction: CashTransaction) -> str:
    purpose = transaction.primary_list or "—"
    if transaction.nature_of_expense:
        purpose += f" · {transaction.nature_of_expense}"
    return purpose


def _proof_suffix(transaction: CashTransaction) -> str:
    return " • proof attached" if transaction.has_proof else ""


# ==================== CASHBOOK ====================

def render_cashbook_pending(transaction: CashTransaction, staff_name: Optional[str]) -> RenderedEmail:
    """Verification request sent to accountants and admins."""
    subject = (
        f"Verification required: {transaction.branch} • "
        f"{transaction.primary_list or 'Cash transaction'}{_proof_suffix(transaction)}"
    )
    html = _layout(
        heading="Cash Transaction Awaiting Verification",
        intro=f"A new transaction from <strong>{escape(staff_name or 'Staff member')}</strong> is pending approval.",
        fields=[
            ("Branch", transaction.branch),
            ("Transaction Date", format_date(transaction.transaction_date)),
            ("Voucher", transaction.voucher_no or "N/A"),
            ("Amount", format_signed_inr(transaction.net_amount)),
            ("Purpose", _purpose(transaction)),
        ],
        action=("Review transaction", "/staff/accounting/approvals"),
        footer_note=" Supporting proof is available in the portal." if transaction.has_proof else "",
    )
    return subject, html


def render_cashbook_approved(
    transaction: CashTransaction,
    staff_name: Optional[str],
    note: Optional[str]
) -> RenderedEmail:
    """Approval notice sent to the submitter and all admins."""
    subject = f"Transaction approved • {transaction.branch}{_proof_suffix(transaction)}"
    extra = ""
    if note:
        extra += f'<p style="margin: 0; color: #4b5563; font-size: 13px;">Verifier note: {escape(note)}</p>'
    if transaction.has_proof:
        extra += (
            '<p style="margin: 12px 0 0 0; color: #4b5563; font-size: 13px;">'
            "Proof attachments remain available in the portal for reference.</p>"
        )

    html = _layout(
        heading="Cash transaction approved",
        intro=(
            f"The transaction submitted by <strong>{escape(staff_name or 'Staff member')}</strong> "
            "has been approved and posted to the cashbook."
            + (" Supporting proof was reviewed." if transaction.has_proof else "")
        ),
        fields=[
            ("Branch", transaction.branch),
            ("Amount", format_inr(transaction.amount)),
            ("Purpose", _purpose(transaction)),
            ("Balance after posting", format_inr(transaction.balance)),
        ],
        extra_html=extra,
    )
    return subject, html


def render_cashbook_rejected(transaction: CashTransaction, note: Optional[str]) -> RenderedEmail:
    """Rejection notice sent to the submitter only."""
    subject = f"Transaction rejected • {transaction.branch}{_proof_suffix(transaction)}"
    extra = ""
    if note:
        extra = f'<p style="margin: 0; color: #dc2626; font-size: 13px;">Reason: {escape(note)}</p>'

    html = _layout(
        heading="Cash transaction rejected",
        intro=(
            "The transaction you submitted was rejected and will not affect the cashbook."
            + (" Please review the attached proof and notes before resubmitting." if transaction.has_proof else "")
        ),
        fields=[
            ("Branch", transaction.branch),
            ("Amount", format_inr(transaction.amount)),
            ("Purpose", _purpose(transaction)),
        ],
        extra_html=extra,
        background="#fef2f2",
        heading_color="#b91c1c",
    )
    return subject, html


def render_low_balance_alert(branch: str, balance: Any) -> RenderedEmail:
    """Alert sent to admins when a branch drops below the low-balance threshold."""
    subject = f"Low balance alert • {branch} • {format_inr(balance)}"
    html = _layout(
        heading="Low cash balance",
        intro=(
            f"The cash balance of <strong>{escape(branch)}</strong> has dropped below "
            f"{escape(format_inr(settings.LOW_BALANCE_THRESHOLD))}. Please arrange a top-up."
        ),
        fields=[
            ("Branch", branch),
            ("Current balance", format_inr(balance)),
            ("Alert threshold", format_inr(settings.LOW_BALANCE_THRESHOLD)),
        ],
        background="#fffbeb",
        heading_color="#b45309",
        action=("Open cashbook", "/admin/cashbook"),
    )
    return subject, html


# ==================== DAILY REPORT ====================

def render_daily_report(report: Dict[str, Any]) -> RenderedEmail:
    """Daily operations summary."""
    subject = f"Daily report • {report['date']}"
    attendance = report["attendance"]
    pending = report["pending_requests"]

    performers = "".join(
        f"<li>{escape(p['staff_name'])}: {p['tasks_completed']} completed</li>"
        for p in report["top_performers"]
    ) or "<li>No tasks completed today</li>"
    teams = "".join(
        f"<li>{escape(t['team_name'])}: {t['completion_rate']}%</li>"
        for t in report["team_performance"]
    ) or "<li>No teams</li>"

    extra = (
        '<h3 style="margin: 16px 0 8px 0; font-size: 15px;">Top performers</h3>'
        f'<ul style="margin: 0; padding-left: 20px;">{performers}</ul>'
        '<h3 style="margin: 16px 0 8px 0; font-size: 15px;">Team completion</h3>'
        f'<ul style="margin: 0; padding-left: 20px;">{teams}</ul>'
    )

    html = _layout(
        heading="Daily operations report",
        intro=f"Summary for {escape(report['date'])}.",
        fields=[
            ("Tasks due today", report["today_tasks"]),
            ("Completed today", report["completed_today"]),
            ("In progress", report["in_progress"]),
            ("Overdue", report["overdue"]),
            (
                "Attendance",
                f"{attendance['present']} present, {attendance['absent']} absent, {attendance['leave']} on leave"
            ),
            (
                "Pending requests",
                f"Maintenance {pending['maintenance']}, Purchase {pending['purchase']}, "
                f"Scrap {pending['scrap']}, Grocery {pending['grocery']}"
            ),
        ],
        extra_html=extra,
        action=("Open dashboard", "/admin/dashboard"),
    )
    return subject, html


# ==================== TASKS ====================

def _task_fields(task: Task) -> List[Tuple[str, Any]]:
    return [
        ("Task", task.title),
        ("Priority", task.priority or "Normal"),
        ("Due date", format_date(task.due_date)),
        ("Status", (task.status or "").replace("_", " ").title()),
    ]


def render_task_assignment(task: Task, staff_name: str) -> RenderedEmail:
    html = _layout(
        heading="New task assigned",
        intro=f"Hello {escape(staff_name)}, a new task has been assigned to you.",
        fields=_task_fields(task) + [("Description", task.description)],
        action=("View task", "/staff/tasks"),
    )
    return f"New Task Assigned: {task.title}", html


def render_task_update(task: Task, staff_name: str, changes: Dict[str, Any]) -> RenderedEmail:
    change_items = "".join(
        f"<li>{escape(str(field).replace('_', ' ').title())}: {escape(str(value))}</li>"
        for field, value in (changes or {}).items()
    )
    extra = (
        '<h3 style="margin: 16px 0 8px 0; font-size: 15px;">Changes</h3>'
        f'<ul style="margin: 0; padding-left: 20px;">{change_items}</ul>'
    ) if change_items else ""

    html = _layout(
        heading="Task updated",
        intro=f"Hello {escape(staff_name)}, a task assigned to you was updated.",
        fields=_task_fields(task),
        extra_html=extra,
        action=("View task", "/staff/tasks"),
    )
    return f"Task Updated: {task.title}", html


def render_task_delegation(task: Task, staff_name: str, delegated_by: Optional[str]) -> RenderedEmail:
    html = _layout(
        heading="Task delegated to you",
        intro=(
            f"Hello {escape(staff_name)}, <strong>{escape(delegated_by or 'A colleague')}</strong> "
            "delegated a task to you."
        ),
        fields=_task_fields(task),
        action=("View task", "/staff/tasks"),
    )
    return f"Task Delegated: {task.title}", html


def render_delegation_admin_notice(task: Task, delegated_by: str) -> RenderedEmail:
    html = _layout(
        heading="Task delegation",
        intro=f"<strong>{escape(delegated_by)}</strong> delegated a task.",
        fields=_task_fields(task),
        action=("Open tasks", "/admin/tasks"),
    )
    return f"Task Delegation: {task.title}", html


def render_task_rejection(task: Task, staff_name: str, rejected_by: str) -> RenderedEmail:
    html = _layout(
        heading="Task rejected",
        intro=(
            f"Hello {escape(staff_name)}, your submission for this task was rejected by "
            f"<strong>{escape(rejected_by)}</strong>. Please review and resubmit."
        ),
        fields=_task_fields(task),
        background="#fef2f2",
        heading_color="#b91c1c",
        action=("View task", "/staff/tasks"),
    )
    return f"Task Rejected: {task.title}", html


def render_task_approval(task: Task, staff_name: str, approved_by: str) -> RenderedEmail:
    html = _layout(
        heading="Task approved",
        intro=(
            f"Hello {escape(staff_name)}, your work on this task was approved by "
            f"<strong>{escape(approved_by)}</strong>."
        ),
        fields=_task_fields(task),
        background="#f0fdf4",
        heading_color="#15803d",
    )
    return f"Task Approved: {task.title}", html


def render_team_task_assignment(
    task: Task,
    team_name: str,
    leader_name: str,
    team_member_count: int
) -> RenderedEmail:
    html = _layout(
        heading="New team task",
        intro=(
            f"Hello {escape(leader_name)}, a task has been assigned to your team "
            f"<strong>{escape(team_name)}</strong>."
        ),
        fields=_task_fields(task) + [("Team members", team_member_count)],
        action=("View task", "/staff/tasks"),
    )
    return f"New Team Task: {task.title}", html


def render_task_status_change(task: Task, staff_name: str, old_status: str, new_status: str) -> RenderedEmail:
    html = _layout(
        heading="Task status changed",
        intro=f"<strong>{escape(staff_name)}</strong> changed the status of a task.",
        fields=[
            ("Task", task.title),
            ("Previous status", old_status.replace("_", " ").title()),
            ("New status", new_status.replace("_", " ").title()),
            ("Due date", format_date(task.due_date)),
        ],
        action=("Open tasks", "/admin/tasks"),
    )
    return f"Task Status Update: {task.title}", html


def render_proof_approval(task: Task, staff_name: str, approved_by: str, proof: TaskUpdateProof) -> RenderedEmail:
    html = _layout(
        heading="Proof approved",
        intro=(
            f"Hello {escape(staff_name)}, the proof you uploaded was approved by "
            f"<strong>{escape(approved_by)}</strong>."
        ),
        fields=[
            ("Task", task.title),
            ("Uploaded", format_date(proof.created_at)),
            ("Notes", proof.notes),
        ],
        background="#f0fdf4",
        heading_color="#15803d",
    )
    return f"Task Proof Approved - {task.title}", html


def render_proof_rejection(task: Task, staff_name: str, rejected_by: str, proof: TaskUpdateProof) -> RenderedEmail:
    html = _layout(
        heading="Proof rejected",
        intro=(
            f"Hello {escape(staff_name)}, the proof you uploaded was rejected by "
            f"<strong>{escape(rejected_by)}</strong>. Please upload a new one."
        ),
        fields=[
            ("Task", task.title),
            ("Uploaded", format_date(proof.created_at)),
            ("Reason", proof.rejection_reason),
        ],
        background="#fef2f2",
        heading_color="#b91c1c",
        action=("Upload new proof", "/staff/tasks"),
    )
    return f"Task Proof Rejected - {task.title}", html


def render_reschedule_request(reschedule: TaskReschedule, task: Task, staff_name: str, admin_name: str) -> RenderedEmail:
    html = _layout(
        heading="Reschedule requested",
        intro=(
            f"Hello {escape(admin_name)}, <strong>{escape(staff_name)}</strong> asked to move "
            "the due date of a task."
        ),
        fields=[
            ("Task", task.title),
            ("Current due date", format_date(reschedule.original_due_date or task.due_date)),
            ("Requested due date", format_date(reschedule.requested_new_date)),
            ("Reason", reschedule.reason),
        ],
        action=("Review request", "/admin/tasks"),
    )
    return f"Reschedule Request: {task.title}", html


def render_reschedule_decision(
    reschedule: TaskReschedule,
    task: Task,
    staff_name: str,
    approved: bool
) -> RenderedEmail:
    """Outcome of a reschedule request, sent to the staff member who asked."""
    fields = [("Task", task.title)]
    if approved:
        fields.append(("New due date", format_date(reschedule.requested_new_date)))
    else:
        fields.append(("Due date", format_date(reschedule.original_due_date or task.due_date)))
    fields.append(("Admin response", reschedule.admin_response))

    outcome = "approved" if approved else "rejected"
    html = _layout(
        heading=f"Reschedule {outcome}",
        intro=f"Hello {escape(staff_name)}, your request to reschedule this task was {outcome}.",
        fields=fields,
        background="#f0fdf4" if approved else "#fef2f2",
        heading_color="#15803d" if approved else "#b91c1c",
        action=("View task", "/staff/tasks"),
    )
    return f"Reschedule {outcome.title()}: {task.title}", html


# ==================== REQUESTS ====================

Fields = List[Tuple[str, Any]]


def _note(label: str, text: Optional[str], color: str = "#4b5563") -> str:
    if not text:
        return ""
    return f'<p style="margin: 12px 0 0 0; color: {color}; font-size: 13px;">{escape(label)}: {escape(text)}</p>'


def render_request_submitted(
    label: str,
    item: str,
    staff_name: str,
    fields: Fields,
    path: str,
    extra_html: str = ""
) -> RenderedEmail:
    """New request notice sent to an admin. ``extra_html`` must already be escaped."""
    html = _layout(
        heading=f"New {label.lower()} request",
        intro=f"<strong>{escape(staff_name)}</strong> submitted a {escape(label.lower())} request for review.",
        fields=fields,
        extra_html=extra_html,
        action=("Review request", path),
    )
    return f"New {label} Request: {item}", html


def render_request_decision(
    label: str,
    item: str,
    staff_name: str,
    approved: bool,
    fields: Fields,
    note: Optional[str] = None
) -> RenderedEmail:
    outcome = "approved" if approved else "rejected"
    html = _layout(
        heading=f"{label} request {outcome}",
        intro=f"Hello {escape(staff_name)}, your {escape(label.lower())} request was {outcome}.",
        fields=fields,
        extra_html=_note("Admin notes" if approved else "Reason", note,
                         "#4b5563" if approved else "#dc2626"),
        background="#f0fdf4" if approved else "#fef2f2",
        heading_color="#15803d" if approved else "#b91c1c",
    )
    return f"{label} Request {outcome.title()}: {item}", html


def render_product_uploaded(item: str, staff_name: str, fields: Fields) -> RenderedEmail:
    html = _layout(
        heading="Product details uploaded",
        intro=(
            f"<strong>{escape(staff_name)}</strong> uploaded the details of the product bought "
            "for an approved requisition. Please verify them."
        ),
        fields=fields,
        action=("Verify product", "/admin/purchase"),
    )
    return f"Product Uploaded for Verification: {item}", html


def render_product_verified(item: str, staff_name: str, fields: Fields, notes: Optional[str]) -> RenderedEmail:
    html = _layout(
        heading="Product verified",
        intro=f"Hello {escape(staff_name)}, the product details you uploaded were verified.",
        fields=fields,
        extra_html=_note("Verification notes", notes),
        background="#f0fdf4",
        heading_color="#15803d",
    )
    return f"Product Verified: {item}", html


def render_product_rejected(item: str, staff_name: str, fields: Fields, reason: Optional[str]) -> RenderedEmail:
    html = _layout(
        heading="Product rejected",
        intro=(
            f"Hello {escape(staff_name)}, the product details you uploaded were rejected. "
            "Please correct them and upload again."
        ),
        fields=fields,
        extra_html=_note("Reason", reason, "#dc2626"),
        background="#fef2f2",
        heading_color="#b91c1c",
        action=("Upload again", "/staff/purchase"),
    )
    return f"Product Rejected: {item}", html


def render_asset_created(item: str, staff_name: str, fields: Fields) -> RenderedEmail:
    html = _layout(
        heading="Asset registered",
        intro=(
            f"Hello {escape(staff_name)}, the verified product was added to the asset register."
        ),
        fields=fields,
        background="#f0fdf4",
        heading_color="#15803d",
        action=("View assets", "/staff/assets"),
    )
    return f"Asset Created: {item}", html


def render_duplicate_serial(item: str, staff_name: str, serial_no: str) -> RenderedEmail:
    html = _layout(
        heading="Duplicate serial number",
        intro=(
            f"Hello {escape(staff_name)}, the product was verified but no asset was created because "
            "its serial number is already registered."
        ),
        fields=[("Item", item), ("Serial number", serial_no)],
        background="#fffbeb",
        heading_color="#b45309",
    )
    return f"Duplicate Serial Number: {serial_no}", html


def render_item_table(items: Sequence[Dict[str, Any]]) -> str:
    """Line items of a grocery request as an HTML table."""
    rows = "".join(
        "<tr>"
        f'<td style="padding: 4px 8px;">{escape(str(i.get("item_name") or ""))}</td>'
        f'<td style="padding: 4px 8px; text-align: right;">'
        f'{escape(str(i.get("quantity") if i.get("quantity") is not None else ""))} '
        f'{escape(str(i.get("unit") or ""))}</td>'
        f'<td style="padding: 4px 8px; text-align: right;">{escape(format_inr(i.get("total_amount")))}</td>'
        "</tr>"
        for i in items if isinstance(i, dict)
    )
    if not rows:
        return ""
    return (
        '<h3 style="margin: 16px 0 8px 0; font-size: 15px;">Items</h3>'
        f'<table style="width: 100%; border-collapse: collapse; font-size: 14px;">{rows}</table>'
    )


# ==================== STATIONARY ====================

def render_low_stock_alert(item_name: str, quantity: Any, branch: str, staff_name: str) -> RenderedEmail:
    """Stock of a stationary item ran low after a staff purchase."""
    html = _layout(
        heading="Low stock alert",
        intro=(
            f"<strong>{escape(item_name)}</strong> is running low at "
            f"<strong>{escape(branch)}</strong>. Please restock."
        ),
        fields=[
            ("Item", item_name),
            ("Quantity left", quantity),
            ("Branch", branch),
            ("Last used by", staff_name),
        ],
        background="#fffbeb",
        heading_color="#b45309",
        action=("Open stationary", "/admin/stationary"),
    )
    return f"Low Stock Alert: {item_name} • {branch}", html


# ==================== SUPPORT ====================

def render_support_report(
    ticket_no: str,
    sender_name: str,
    sender_email: str,
    sender_role: str,
    category: str,
    priority: str,
    title: str,
    description: str,
    attachment_urls: Sequence[str]
) -> RenderedEmail:
    links = "".join(
        f'<li><a href="{escape(url)}">{escape(url)}</a></li>' for url in attachment_urls if url
    )
    extra = (
        '<h3 style="margin: 16px 0 8px 0; font-size: 15px;">Attachments</h3>'
        f'<ul style="margin: 0; padding-left: 20px;">{links}</ul>'
    ) if links else ""

    html = _layout(
        heading="New support report",
        intro=f"<strong>{escape(sender_name)}</strong> reported a problem from the portal.",
        fields=[
            ("Ticket", ticket_no),
            ("From", f"{sender_name} <{sender_email}> ({sender_role})"),
            ("Category", category.title()),
            ("Priority", priority.title()),
            ("Title", title),
            ("Description", description),
        ],
        extra_html=extra,
        background="#fef2f2" if priority == "high" else "#f9fafb",
    )
    return f"[{ticket_no}] {priority.upper()} • {title}", html
