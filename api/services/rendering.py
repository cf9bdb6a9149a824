"""
Widget rendering for the job listing data panel.

Each widget type maps to a renderer ``(field, ctx) -> Markup``. Renderers
only read the listing: the stored metadata and the author come from the
RenderContext built for the request.
"""

from dataclasses import dataclass, field as dc_field
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging

from jinja2 import DictLoader, Environment
from markupsafe import Markup

from api.schemas.fields import FieldDescriptor, WidgetType
from core.utils.formatting import join_classes, sanitize_link_html, strip_all_tags
from database.models.listings import JobType
from database.models.users import User

logger = logging.getLogger(__name__)

NONCE_FIELD = "job_manager_nonce"
NONCE_ACTION = "save_meta_data"
JOB_TYPE_TAXONOMY = "job_listing_type"


TEMPLATES = {
    "label": (
        '<label for="{{ key }}">{{ label }}:'
        '{% if description %} <span class="tips" data-tip="{{ description }}">[?]</span>{% endif %}'
        '</label>'
    ),
    "text": """<p class="form-field">
{{ label_html }}
<input type="text" autocomplete="off" name="{{ name }}" class="{{ classes }}" id="{{ key }}" placeholder="{{ placeholder }}" value="{{ value }}" />
</p>""",
    "textarea": """<p class="form-field">
{{ label_html }}
<textarea name="{{ name }}" id="{{ key }}" placeholder="{{ placeholder }}">{{ value }}</textarea>
</p>""",
    "select": """<p class="form-field">
{{ label_html }}
<select name="{{ name }}" id="{{ key }}">
{% for option_key, option_label in options.items() %}
<option value="{{ option_key }}"{% if option_key == value %} selected="selected"{% endif %}>{{ option_label }}</option>
{% endfor %}
</select>
</p>""",
    "multiselect": """<p class="form-field">
{{ label_html }}
<select multiple="multiple" name="{{ name }}[]" id="{{ key }}">
{% for option_key, option_label in options.items() %}
<option value="{{ option_key }}"{% if option_key in values %} selected="selected"{% endif %}>{{ option_label }}</option>
{% endfor %}
</select>
</p>""",
    "checkbox": """<p class="form-field form-field-checkbox">
<label for="{{ key }}">{{ label }}</label>
<input type="checkbox" class="checkbox" name="{{ name }}" id="{{ key }}" value="1"{% if checked %} checked="checked"{% endif %} />
{% if description %}<span class="description">{{ description }}</span>{% endif %}
</p>""",
    "radio": """<p class="form-field form-field-checkbox">
<label>{{ label }}</label>
{% for option_key, option_label in options.items() %}
<label><input type="radio" class="radio" name="{{ name }}" value="{{ option_key }}"{% if option_key == value %} checked="checked"{% endif %} /> {{ option_label }}</label>
{% endfor %}
{% if description %}<span class="description">{{ description }}</span>{% endif %}
</p>""",
    "file": """<p class="form-field">
{{ label_html }}
{% if multiple %}
{% for file_url in values %}
<span class="file_url"><input type="text" name="{{ name }}[]" placeholder="{{ placeholder }}" value="{{ file_url }}" /><button class="button button-small wp_job_manager_upload_file_button" data-uploader_button_text="Use file">Upload</button><button class="button button-small wp_job_manager_view_file_button">View</button></span>
{% endfor %}
<button class="button button-small wp_job_manager_add_another_file_button" data-field_name="{{ key }}" data-field_placeholder="{{ placeholder }}" data-uploader_button_text="Use file" data-uploader_button="Upload" data-view_button="View">Add file</button>
{% else %}
<span class="file_url"><input type="text" name="{{ name }}" id="{{ key }}" placeholder="{{ placeholder }}" value="{{ value }}" /><button class="button button-small wp_job_manager_upload_file_button" data-uploader_button_text="Use file">Upload</button><button class="button button-small wp_job_manager_view_file_button">View</button></span>
{% endif %}
</p>""",
    "author": """<p class="form-field form-field-author">
<label for="{{ key }}">{{ label }}:</label>
<span class="current-author">
{% if posted_by %}<a href="{{ profile_url }}">#{{ author_id }} &ndash; {{ posted_by.login }}</a>{% else %}Guest User{% endif %} <a href="#" class="change-author button button-small">Change</a>
</span>
<span class="hidden change-author">
<input type="number" name="{{ name }}" id="{{ key }}" step="1" value="{{ author_value }}" style="width: 4em;" />
<span class="description">Enter the ID of the user, or leave blank if submitted by a guest.</span>
</span>
</p>""",
    "hidden_input": '<input type="hidden" name="{{ name }}" class="{{ classes }}" id="{{ key }}" value="{{ value }}" />',
    "info": """<p class="form-field">
{{ label_html }}
{% if information %}<span class="information">{{ information }}</span>{% endif %}
{{ hidden_input }}
</p>""",
    "panel": """<div class="wp_job_manager_meta_data">
<input type="hidden" id="{{ nonce_field }}" name="{{ nonce_field }}" value="{{ nonce }}" />
{% for chunk in chunks %}{{ chunk }}
{% endfor %}</div>""",
    "job_type_box": """<div id="taxonomy-{{ taxonomy }}" class="categorydiv">
<ul id="{{ taxonomy }}-tabs" class="category-tabs">
<li class="tabs"><a href="#{{ taxonomy }}-all">All Job Types</a></li>
<li class="hide-if-no-js"><a href="#{{ taxonomy }}-pop">Most Used</a></li>
</ul>
<div id="{{ taxonomy }}-all" class="tabs-panel">
<ul id="{{ taxonomy }}checklist" class="list:{{ taxonomy }} categorychecklist form-no-clear">
{% for term in terms %}
<li id="{{ taxonomy }}-{{ term.id }}"><label class="selectit"><input type="radio" id="in-{{ taxonomy }}-{{ term.id }}" name="tax_input[{{ taxonomy }}]" value="{{ term.id }}"{% if term.id == current %} checked="checked"{% endif %} />{{ term.name }}</label></li>
{% endfor %}
</ul>
</div>
<div id="{{ taxonomy }}-pop" class="tabs-panel" style="display: none;">
<ul id="{{ taxonomy }}checklist-pop" class="categorychecklist form-no-clear">
{% for term in popular %}
<li id="popular-{{ taxonomy }}-{{ term.id }}"><label class="selectit"><input type="radio" id="in-popular-{{ taxonomy }}-{{ term.id }}" value="{{ term.id }}"{% if term.id == current %} checked="checked"{% endif %} />{{ term.name }}</label></li>
{% endfor %}
</ul>
</div>
</div>""",
}

_env = Environment(
    loader=DictLoader(TEMPLATES),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True,
)


def _render(template_name: str, **context: Any) -> Markup:
    return Markup(_env.get_template(template_name).render(**context))


@dataclass
class RenderContext:
    """Everything a widget may read about the listing being edited."""

    listing_id: int
    author_id: Optional[int] = None
    meta: Dict[str, Any] = dc_field(default_factory=dict)
    users: Dict[int, User] = dc_field(default_factory=dict)
    admin_url: str = "/admin"

    def stored(self, key: str) -> Any:
        return self.meta.get(key, "")

    def profile_url(self, user_id: int) -> str:
        return f"{self.admin_url.rstrip('/')}/user-edit?user_id={user_id}"


Renderer = Callable[[FieldDescriptor, RenderContext], str]
PanelHook = Callable[[int], Optional[str]]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def _label_html(field: FieldDescriptor) -> Markup:
    return _render(
        "label",
        key=field.key,
        label=strip_all_tags(field.label),
        description=field.description,
    )


def _current_value(field: FieldDescriptor, ctx: RenderContext) -> Any:
    """Descriptor value, or the stored value when the descriptor leaves it unset."""
    return ctx.stored(field.key) if field.value is None else field.value


def _truthy_value(field: FieldDescriptor, ctx: RenderContext) -> Any:
    """Descriptor value, or the stored value when the descriptor value is empty."""
    return field.value if field.value else ctx.stored(field.key)


def render_text(field: FieldDescriptor, ctx: RenderContext) -> Markup:
    return _render(
        "text",
        label_html=_label_html(field),
        key=field.key,
        name=field.input_name,
        classes=join_classes(field.classes),
        placeholder=field.placeholder,
        value=_as_text(_current_value(field, ctx)),
    )


def render_textarea(field: FieldDescriptor, ctx: RenderContext) -> Markup:
    return _render(
        "textarea",
        label_html=_label_html(field),
        key=field.key,
        name=field.input_name,
        placeholder=field.placeholder,
        value=_as_text(_current_value(field, ctx)),
    )


def render_select(field: FieldDescriptor, ctx: RenderContext) -> Markup:
    value = _current_value(field, ctx)
    return _render(
        "select",
        label_html=_label_html(field),
        key=field.key,
        name=field.input_name,
        options=field.options,
        value=None if value is None else str(value),
    )


def render_multiselect(field: FieldDescriptor, ctx: RenderContext) -> Markup:
    value = _current_value(field, ctx)
    values = [str(v) for v in value] if value and isinstance(value, (list, tuple)) else []
    return _render(
        "multiselect",
        label_html=_label_html(field),
        key=field.key,
        name=field.input_name,
        options=field.options,
        values=values,
    )


def render_checkbox(field: FieldDescriptor, ctx: RenderContext) -> Markup:
    value = _truthy_value(field, ctx)
    return _render(
        "checkbox",
        key=field.key,
        name=field.input_name,
        label=strip_all_tags(field.label),
        description=field.description,
        checked=_as_text(value) == "1",
    )


def render_radio(field: FieldDescriptor, ctx: RenderContext) -> Markup:
    value = _truthy_value(field, ctx)
    return _render(
        "radio",
        name=field.input_name,
        label=strip_all_tags(field.label),
        options=field.options,
        value=_as_text(value),
        description=field.description,
    )


def render_file(field: FieldDescriptor, ctx: RenderContext) -> Markup:
    value = _current_value(field, ctx)
    if field.multiple:
        if isinstance(value, (list, tuple)):
            values = [_as_text(v) for v in value]
        else:
            values = [_as_text(value)] if value not in (None, "") else []
    else:
        values = []
    return _render(
        "file",
        label_html=_label_html(field),
        key=field.key,
        name=field.input_name,
        placeholder=field.placeholder or "http://",
        multiple=field.multiple,
        values=values,
        value=_as_text(value),
    )


def render_author(field: FieldDescriptor, ctx: RenderContext) -> Markup:
    # An explicit value overrides the record's author
    if field.value is not None and _as_text(field.value) != "":
        author_id = _as_text(field.value)
    else:
        author_id = _as_text(ctx.author_id or "")

    posted_by = None
    if author_id.isdigit():
        posted_by = ctx.users.get(int(author_id))

    return _render(
        "author",
        key=field.key,
        name=field.input_name,
        label=strip_all_tags(field.label),
        posted_by=posted_by,
        author_id=author_id,
        author_value="" if author_id == "0" else author_id,
        profile_url=ctx.profile_url(int(author_id)) if posted_by else "",
    )


def render_hidden(field: FieldDescriptor, ctx: RenderContext) -> Markup:
    hidden_input = Markup("")
    if field.type == WidgetType.HIDDEN.value:
        hidden_input = _render(
            "hidden_input",
            key=field.key,
            name=field.input_name,
            classes=join_classes(field.classes),
            value=_as_text(_current_value(field, ctx)),
        )
        if not field.label:
            return hidden_input

    information = Markup(sanitize_link_html(field.information)) if field.information else ""
    return _render(
        "info",
        label_html=_label_html(field),
        information=information,
        hidden_input=hidden_input,
    )


BUILTIN_RENDERERS: Dict[str, Renderer] = {
    WidgetType.TEXT.value: render_text,
    WidgetType.TEXTAREA.value: render_textarea,
    WidgetType.SELECT.value: render_select,
    WidgetType.MULTISELECT.value: render_multiselect,
    WidgetType.CHECKBOX.value: render_checkbox,
    WidgetType.RADIO.value: render_radio,
    WidgetType.FILE.value: render_file,
    WidgetType.AUTHOR.value: render_author,
    WidgetType.HIDDEN.value: render_hidden,
    WidgetType.INFO.value: render_hidden,
}


class RendererRegistry:
    """
    Maps widget tags to renderers.

    Built-in tags resolve first; other tags resolve to renderers registered
    for that exact tag.
    """

    def __init__(self):
        self._builtin: Dict[str, Renderer] = dict(BUILTIN_RENDERERS)
        self._external: Dict[str, Renderer] = {}
        self.start_hooks: List[PanelHook] = []
        self.end_hooks: List[PanelHook] = []

    def register(self, widget_type: str, renderer: Renderer) -> None:
        if widget_type in self._builtin:
            logger.warning(f"Widget type {widget_type!r} is built in; the built-in renderer wins")
        self._external[widget_type] = renderer

    def resolve(self, widget_type: str) -> Optional[Renderer]:
        return self._builtin.get(widget_type) or self._external.get(widget_type)

    def on_start(self, hook: PanelHook) -> None:
        self.start_hooks.append(hook)

    def on_end(self, hook: PanelHook) -> None:
        self.end_hooks.append(hook)


def render_field(field: FieldDescriptor, ctx: RenderContext, registry: RendererRegistry) -> str:
    """Render one field, or nothing when no renderer handles its type."""
    renderer = registry.resolve(field.type or WidgetType.TEXT.value)
    if renderer is None:
        logger.debug(f"No renderer for widget type {field.type!r}, skipping {field.key}")
        return ""
    return str(renderer(field, ctx))


def _run_hooks(hooks: Iterable[PanelHook], listing_id: int) -> List[Markup]:
    chunks = []
    for hook in hooks:
        output = hook(listing_id)
        if output:
            chunks.append(Markup(output))
    return chunks


def render_panel(
    fields: Iterable[FieldDescriptor],
    ctx: RenderContext,
    nonce: str,
    registry: RendererRegistry,
) -> str:
    """
    Render the whole listing data panel: nonce, start hooks, every field
    in order, end hooks.
    """
    chunks = _run_hooks(registry.start_hooks, ctx.listing_id)
    for descriptor in fields:
        html = render_field(descriptor, ctx, registry)
        if html:
            chunks.append(Markup(html))
    chunks.extend(_run_hooks(registry.end_hooks, ctx.listing_id))

    return str(_render("panel", nonce_field=NONCE_FIELD, nonce=nonce, chunks=chunks))


def render_job_type_box(
    terms: Iterable[JobType],
    popular: Iterable[JobType],
    current_ids: List[int],
) -> str:
    """Radio selector allowing a single job type per listing."""
    current = current_ids[-1] if current_ids else 0
    return str(
        _render(
            "job_type_box",
            taxonomy=JOB_TYPE_TAXONOMY,
            terms=list(terms),
            popular=list(popular),
            current=current,
        )
    )
