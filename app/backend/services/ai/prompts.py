"""
Prompt templates for blueprint knowledge extraction.

Each extraction kind is registered once in ``TEMPLATES`` with its system
instruction, body template and declared output fields. The JSON skeleton in
each body is generated from the declared fields, so the prompt and the
projected result always agree on the key set.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from ...models import FieldShape, TemplateId

logger = logging.getLogger(__name__)

DOCUMENT_MARKER = "{{DOCUMENT_TEXT}}"
DEFAULT_MAX_SOURCE_CHARS = 15_000


@dataclass(frozen=True)
class OutputField:
    """
    One declared result key.

    Object fields list their own sub-keys in ``fields``; their description
    is only used when no sub-keys are declared.
    """

    name: str
    description: str
    shape: FieldShape = FieldShape.TEXT
    fields: tuple["OutputField", ...] = ()

    def empty_value(self) -> str | dict:
        if self.shape == FieldShape.OBJECT:
            return {f.name: f.empty_value() for f in self.fields}
        return ""

    def skeleton(self) -> Any:
        if self.fields:
            return {f.name: f.skeleton() for f in self.fields}
        return self.description


@dataclass(frozen=True)
class PromptTemplate:
    """
    A named extraction task.

    Attributes:
        id: Registry key.
        system_instruction: System message sent with every call.
        body_template: User message containing ``DOCUMENT_MARKER``.
        output_fields: Declared result keys, in output order.
        full_analysis: Whether this is the combined template. Malformed replies
            degrade to a placeholder payload instead of failing.
    """

    id: TemplateId
    system_instruction: str
    body_template: str
    output_fields: tuple[OutputField, ...]
    full_analysis: bool = False

    @property
    def keys(self) -> list[str]:
        return [f.name for f in self.output_fields]


@dataclass(frozen=True)
class RenderedPrompt:
    system: str
    user: str


# =============================================================================
# Shared prompt text
# =============================================================================

SYSTEM_INSTRUCTION = "你是擅长从项目文档中提炼售前关键信息的专家。"

ROLE_DEFINITION = """角色定义：
你是一位资深的"软件公司行业知识提炼专家"。你的核心目标是从非标准的项目业务蓝图中提取具备高度行业代表性、可复用的知识资产，并构建公司级的行业知识库。"""

# Sent with every template, before any template-specific rules.
OUTPUT_RULES = (
    "直接输出一个纯 JSON 对象，不要包含任何 markdown 代码块标记（如 ```json），"
    "不要在 JSON 对象前后输出任何解释性文字",
    "键名必须与上述结构完全一致，不得增加、删除或改名；蓝图未涉及的内容输出空字符串",
    "准确引用：所有信息点必须引用蓝图原文，关键术语用 `` 标注",
    "格式规范：字段值内部使用 Markdown 格式（列表、表格）组织结构化内容，保持内容整洁可读",
)

_DOCUMENT_SECTION = f"""以下是项目蓝图的全文内容：
--------------------
{DOCUMENT_MARKER}
--------------------"""

_TASK_PREFIX = "请深度阅读上传的项目蓝图文件，"


def _make_template(
    template_id: TemplateId,
    task: str,
    fields: tuple[OutputField, ...],
    extra_rules: tuple[str, ...] = (),
    full_analysis: bool = False,
) -> PromptTemplate:
    skeleton = json.dumps(
        {f.name: f.skeleton() for f in fields},
        ensure_ascii=False,
        indent=2,
    )
    rules = "\n".join(f"- {rule}" for rule in OUTPUT_RULES + extra_rules)
    body = "\n\n".join(
        [
            ROLE_DEFINITION,
            f"任务目标：\n{_TASK_PREFIX}{task}\n\n{skeleton}",
            f"输出要求：\n{rules}",
            _DOCUMENT_SECTION,
        ]
    )
    return PromptTemplate(
        id=template_id,
        system_instruction=SYSTEM_INSTRUCTION,
        body_template=body,
        output_fields=fields,
        full_analysis=full_analysis,
    )


# =============================================================================
# Field Definitions
# =============================================================================

_MARKDOWN_LIST = "，使用 Markdown 列表格式"

_OVERVIEW_FIELDS = (
    OutputField("customerName", "明确输出客户全称"),
    OutputField(
        "coreProblems",
        "以要点形式罗列客户在管理、效率、数据维度的原始痛点，每个要点一行，使用 Markdown 列表格式（- 或 * 开头）",
    ),
    OutputField(
        "solutionSummary",
        "以要点形式罗列本系统如何通过功能模块解决行业特定问题，每个要点一行，使用 Markdown 列表格式（- 或 * 开头）",
    ),
)

_PAIN_POINT_FIELDS = (
    OutputField("executive", "一线执行层（具象痛点）：描述具体的报价出错、反馈无凭证等动作痛点" + _MARKDOWN_LIST),
    OutputField("management", "中间管理层（具象痛点）：描述具体的进度黑盒、成本偏差、物资短缺等监控痛点" + _MARKDOWN_LIST),
    OutputField("senior", "高管层（具象痛点）：描述具体的 KPI 盲区、利润黑盒、风险预警缺失等决策痛点" + _MARKDOWN_LIST),
)

_SOLUTION_FIELDS = (
    OutputField("masterData", "5.1 主数据规划：列出核心主数据、其编码规则及关键的业务联动点，使用 Markdown 格式"),
    OutputField(
        "painSolutions",
        "5.2 痛点方案罗列：\n\n"
        "首先，从蓝图中提取所有需求痛点（包括一线执行层、中间管理层、高管层的痛点）。\n\n"
        "然后，针对每个痛点，列出对应的解决方案。每个痛点的解决方案必须包含以下二级要点：\n"
        "- 数据结构：描述解决该痛点所需的数据结构设计\n"
        "- 流程：描述解决该痛点的业务流程设计\n"
        "- 联动：描述解决该痛点所需的数据联动、人员联动等机制\n\n"
        "输出格式示例：\n\n"
        "### 痛点1：痛点描述\n**解决方案：**\n- 数据结构：***\n- 流程：***\n- 联动：***",
    ),
)

_BUSINESS_ARCHITECTURE = OutputField(
    "businessArchitecture",
    "按以下格式输出蓝图中涉及的所有业务流程：\n"
    "流程 [编号]：[名称]\n"
    "环节名称：业务节点的定义\n"
    "执行角色：该步骤的操作人员\n"
    "工作内容：具体的业务动作（如选择产品、自动计算、审批等）\n"
    "流转条件：进入下个节点的前提\n"
    "潜在痛点：该环节在手工阶段或旧模式下的典型问题",
)

_ROLE_VALUE = OutputField(
    "roleValueTransformation",
    "分析核心角色上线前后的工作模式变化，按照价值转化评分 (满分10分) 从高到低排列，"
    "格式：排序、角色、价值转换描述、评分。必须涵盖业务架构层涉及的所有角色。使用 Markdown 表格格式输出",
)

_IT_ARCHITECTURE = OutputField(
    "itArchitecture",
    "描述系统的技术架构、系统集成方案、数据接口设计、第三方系统对接等 IT 架构相关内容，使用 Markdown 格式",
)

_CHANGE_MANAGEMENT = OutputField(
    "changeManagement",
    "提炼系统如何通过技术手段实现管理约束（如强制留痕、删除限制等），使用 Markdown 格式",
)

_ASSET_SCHEDULING = OutputField(
    "assetScheduling",
    "提炼非人资源（物料、车辆等）的调度逻辑与库存策略，使用 Markdown 格式",
)

_STANDARDS = OutputField(
    "standards",
    "按以下格式罗列：编码体系：编码名称/术语，具体细节（规则），备注解释\n"
    "专业术语：术语名称，具体细节，备注解释。使用 Markdown 格式",
)

_INDUSTRY_ASSETS = OutputField(
    "industryAssets",
    "总结 3 条最值得在同类项目中复用的业务逻辑或核心竞争力方案" + _MARKDOWN_LIST,
)

_FULL_ANALYSIS_FIELDS = (
    OutputField("projectOverview", "项目背景概览", FieldShape.OBJECT, _OVERVIEW_FIELDS),
    _BUSINESS_ARCHITECTURE,
    _ROLE_VALUE,
    OutputField("painPoints", "需求痛点层", FieldShape.OBJECT, _PAIN_POINT_FIELDS),
    OutputField("solutionStrategy", "方案策略层", FieldShape.OBJECT, _SOLUTION_FIELDS),
    _CHANGE_MANAGEMENT,
    _ASSET_SCHEDULING,
    _STANDARDS,
    _INDUSTRY_ASSETS,
)


# =============================================================================
# Template Registry
# =============================================================================

TEMPLATES: dict[TemplateId, PromptTemplate] = {
    TemplateId.ANALYZE: _make_template(
        TemplateId.ANALYZE,
        "严格按照以下结构进行知识提炼，并以 JSON 格式输出：",
        _FULL_ANALYSIS_FIELDS,
        extra_rules=("逻辑严密：确保方案策略层与需求痛点层形成闭环",),
        full_analysis=True,
    ),
    TemplateId.PROJECT_OVERVIEW: _make_template(
        TemplateId.PROJECT_OVERVIEW,
        "严格按照以下结构进行知识提炼，并以 JSON 格式输出：",
        _OVERVIEW_FIELDS,
        extra_rules=(
            "coreProblems 字段必须使用 Markdown 无序列表格式，每个痛点独立一行，例如："
            '"- 管理维度：缺乏统一的数据管理平台，各部门数据孤岛严重\\n- 效率维度：手工录入数据耗时耗力，错误率高"',
            "solutionSummary 字段必须使用 Markdown 无序列表格式，每个解决方案独立一行，例如："
            '"- 通过主数据管理模块统一数据标准，打通各部门数据壁垒\\n- 通过自动化流程减少手工操作，提升数据录入效率和准确性"',
        ),
    ),
    TemplateId.BUSINESS_ARCHITECTURE: _make_template(
        TemplateId.BUSINESS_ARCHITECTURE,
        "提取业务架构层信息，并以 JSON 格式输出：",
        (_BUSINESS_ARCHITECTURE,),
    ),
    TemplateId.ROLE_VALUE_TRANSFORMATION: _make_template(
        TemplateId.ROLE_VALUE_TRANSFORMATION,
        "提取角色价值转换层信息，并以 JSON 格式输出：",
        (_ROLE_VALUE,),
    ),
    TemplateId.PAIN_POINTS: _make_template(
        TemplateId.PAIN_POINTS,
        "提取需求痛点层信息，必须以具象化方式描述，涉及具体的人、事、指标、工作项，严禁泛泛而谈。以 JSON 格式输出：",
        _PAIN_POINT_FIELDS,
        extra_rules=("必须具象化，涉及具体的人、事、指标、工作项",),
    ),
    TemplateId.IT_ARCHITECTURE: _make_template(
        TemplateId.IT_ARCHITECTURE,
        "提取 IT 架构与集成层信息，并以 JSON 格式输出：",
        (_IT_ARCHITECTURE,),
    ),
    TemplateId.SOLUTION_STRATEGY: _make_template(
        TemplateId.SOLUTION_STRATEGY,
        "提取方案策略层信息，并以 JSON 格式输出：",
        _SOLUTION_FIELDS,
        extra_rules=(
            "逻辑严密：确保方案策略层与需求痛点层形成闭环，每个痛点都要有对应的解决方案",
            "painSolutions 字段必须首先列出所有需求痛点，然后针对每个痛点提供解决方案",
            "每个痛点的解决方案必须包含三个二级要点：数据结构、流程、联动，且每个二级要点都要有具体的内容描述，不能为空",
            "痛点描述要准确引用蓝图中的痛点内容",
        ),
    ),
    TemplateId.CHANGE_MANAGEMENT: _make_template(
        TemplateId.CHANGE_MANAGEMENT,
        "提取变革管理层信息，并以 JSON 格式输出：",
        (_CHANGE_MANAGEMENT,),
    ),
    TemplateId.ASSET_SCHEDULING: _make_template(
        TemplateId.ASSET_SCHEDULING,
        "提取资产与资源调度层信息，并以 JSON 格式输出：",
        (_ASSET_SCHEDULING,),
    ),
    TemplateId.STANDARDS: _make_template(
        TemplateId.STANDARDS,
        "提取行业规范与标准化层信息，并以 JSON 格式输出：",
        (_STANDARDS,),
    ),
    TemplateId.INDUSTRY_ASSETS: _make_template(
        TemplateId.INDUSTRY_ASSETS,
        "提取行业资产总结层信息，并以 JSON 格式输出：",
        (_INDUSTRY_ASSETS,),
    ),
}


def get_template(template_id: TemplateId | str) -> PromptTemplate:
    """
    Look up a registered template.

    Raises:
        KeyError: If no template is registered under ``template_id``.
    """
    try:
        return TEMPLATES[TemplateId(template_id)]
    except ValueError:
        raise KeyError(template_id) from None


def build_prompt(
    template: PromptTemplate,
    source_text: str,
    max_chars: int = DEFAULT_MAX_SOURCE_CHARS,
) -> RenderedPrompt:
    """
    Render a template for a source document.

    The source text is truncated to its first ``max_chars`` characters, then
    substituted for every occurrence of the document marker.

    Args:
        template: Template to render.
        source_text: Text extracted from the document.
        max_chars: Truncation bound for the source text.

    Returns:
        RenderedPrompt with the system and user messages.
    """
    truncated = source_text[:max_chars]
    if len(source_text) > max_chars:
        logger.info(
            "Truncating source text for '%s' from %d to %d characters",
            template.id.value,
            len(source_text),
            max_chars,
        )

    user = template.body_template.replace(DOCUMENT_MARKER, truncated)
    return RenderedPrompt(system=template.system_instruction, user=user)
