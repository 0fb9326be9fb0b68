"""排盘结果归一化。

把上游排盘接口的 JSON 转换成 QimenResult：

- 四盘（天/地/人/神）各 9 项，按 PALACE_ORDER 对齐；
- 单宫字段缺失时用空串或“无”代替，单宫结构异常时用“数据错误”代替；
- 整体缺少九宫列表（gong_pan）时抛出 DataShapeError，由调用方回退到模拟数据。

这里只做模板填充，不做任何推演。
"""

from typing import Any, Dict, List, Optional, Tuple

from qimen_core.domain.exceptions import DataShapeError
from qimen_core.domain.qimen import PALACE_COUNT, PALACE_ORDER, BasicInfo, QimenInput, QimenResult
from qimen_core.infrastructure.logging.logger import logger

DATA_ERROR = "数据错误"
NO_SPIRIT = "无"

DEFAULT_ANALYSIS = "基于奇门遁甲排盘的详细分析请查看【奇门遁甲报告】中的具体内容。AI助手将结合这些信息为您提供更深入的解读。"

SUGGESTION_ASK_AI = "建议结合具体问题咨询AI助手"
SUGGESTION_WATCH = "注意观察时局变化"
SUGGESTION_YANG = "阳遁主进取，宜主动谋划、顺势而为"
SUGGESTION_YIN = "阴遁主收敛，宜守静待时、稳中求进"
SUGGESTION_CAUTION = "吉凶仅供参考，决策需谨慎"
SUGGESTION_SINCERITY = "心诚则灵，意动则行"

MAJOR_RULE = "════════"
MINOR_RULE = "──────"


def normalize_response(api_response: Dict[str, Any]) -> QimenResult:
    """把 {errcode, errmsg, data: {...}} 形式的响应转换为 QimenResult。"""

    data = api_response.get("data") if isinstance(api_response, dict) else None
    if not isinstance(data, dict):
        raise DataShapeError(code="MISSING_DATA", message="API响应数据格式错误：缺少data字段")
    gong_pan = data.get("gong_pan")
    if not isinstance(gong_pan, list):
        logger.error("gong_pan missing or not a list", extra={"extra": {"type": type(gong_pan).__name__}})
        raise DataShapeError(code="MISSING_GONG_PAN", message="API响应数据格式错误：缺少九宫数据")

    tianpan: List[str] = []
    dipan: List[str] = []
    renpan: List[str] = []
    shenpan: List[str] = []
    for index in range(PALACE_COUNT):
        pan = gong_pan[index] if index < len(gong_pan) else None
        tian, di, ren, shen = _palace_cells(pan, index)
        tianpan.append(tian)
        dipan.append(di)
        renpan.append(ren)
        shenpan.append(shen)

    return QimenResult(
        tianpan=tuple(tianpan),
        dipan=tuple(dipan),
        renpan=tuple(renpan),
        shenpan=tuple(shenpan),
        analysis=build_analysis(data),
        suggestions=tuple(build_suggestions(data)),
        basic_info=build_basic_info(data),
        detailed_info=build_detailed_info(data),
    )


def _palace_cells(pan: Any, index: int) -> Tuple[str, str, str, str]:
    try:
        tian = f"{_field(pan, 'tianpan', 'jiuxing')}{_field(pan, 'tianpan', 'sanqiliuyi')}"
        di = _field(pan, "dipan", "sanqiliuyi")
        ren = _field(pan, "renpan", "bamen")
        shen = _field(pan, "shenpan", "bashen") or NO_SPIRIT
        return tian, di, ren, shen
    except (AttributeError, TypeError):
        logger.warning(
            "Malformed palace entry",
            extra={"extra": {"index": index, "palace": _palace_name(index)}},
        )
        return DATA_ERROR, DATA_ERROR, DATA_ERROR, DATA_ERROR


def _field(pan: Any, section: str, key: str) -> str:
    """读取 pan[section][key]；缺失返回空串，结构不是对象时抛 AttributeError。"""
    if pan is None:
        raise TypeError("palace entry missing")
    sub = pan.get(section)
    if sub is None:
        return ""
    value = sub.get(key)
    return "" if value is None else str(value)


def _palace_name(index: int) -> str:
    return PALACE_ORDER[index] if index < PALACE_COUNT else f"第{index + 1}宫"


def _get(mapping: Optional[Dict[str, Any]], key: str) -> str:
    if not isinstance(mapping, dict):
        return ""
    value = mapping.get(key)
    return "" if value is None else str(value)


def _pillars(sizhu: Dict[str, Any]) -> List[str]:
    return [
        f"{_get(sizhu, prefix + '_gan')}{_get(sizhu, prefix + '_zhi')}"
        for prefix in ("year", "month", "day", "hour")
    ]


def build_basic_info(data: Dict[str, Any]) -> BasicInfo:
    sizhu = data.get("sizhu_info")
    zhifu = data.get("zhifu_info")
    return BasicInfo(
        gongli=data.get("gongli") or "公历时间获取失败",
        nongli=data.get("nongli") or "农历时间获取失败",
        sizhu=" ".join(_pillars(sizhu)) if sizhu else "四柱信息获取失败",
        zhifu=f"{_get(zhifu, 'zhifu_name')}星（落{_get(zhifu, 'zhifu_luogong')}宫）" if zhifu else "值符信息获取失败",
        zhishi=f"{_get(zhifu, 'zhishi_name')}（落{_get(zhifu, 'zhishi_luogong')}宫）" if zhifu else "值使信息获取失败",
        dunju=f"{data.get('dunju') or '遁局获取失败'}（{data.get('dingju') or '定局获取失败'}）",
    )


def build_detailed_info(data: Dict[str, Any]) -> str:
    """生成多段落的详细信息文本。"""

    lines: List[str] = [f"{MAJOR_RULE} 基础信息 {MAJOR_RULE}"]
    lines.append(f"公历时间：{data.get('gongli') or '获取失败'}")
    lines.append(f"农历时间：{data.get('nongli') or '获取失败'}")
    lines.append("")

    sizhu = data.get("sizhu_info")
    if sizhu:
        year, month, day, hour = _pillars(sizhu)
        lines.append(f"{MINOR_RULE} 四柱信息 {MINOR_RULE}")
        lines += [f"年柱：{year}", f"月柱：{month}", f"日柱：{day}", f"时柱：{hour}", ""]

    xunkong = data.get("xunkong_info")
    if xunkong:
        lines.append(f"{MINOR_RULE} 旬空信息 {MINOR_RULE}")
        for label, prefix in (("年", "year"), ("月", "month"), ("日", "day"), ("时", "hour")):
            lines.append(f"{label}柱旬空：{_get(xunkong, prefix + '_xunkong') or '获取失败'}")
        lines.append("")

    lines.append(f"{MINOR_RULE} 奇门遁甲信息 {MINOR_RULE}")
    zhifu = data.get("zhifu_info")
    if zhifu:
        lines.append(f"值符：{_get(zhifu, 'zhifu_name') or '获取失败'}星（落{_get(zhifu, 'zhifu_luogong')}宫）")
        lines.append(f"值使：{_get(zhifu, 'zhishi_name') or '获取失败'}（落{_get(zhifu, 'zhishi_luogong')}宫）")
    lines.append(f"符首：{data.get('fushou') or '获取失败'}")
    lines.append(f"旬首：{data.get('xunshou') or '获取失败'}")
    lines.append(f"遁局：{data.get('dunju') or '获取失败'}（{data.get('dingju') or '获取失败'}）")
    if data.get("panlei"):
        lines.append(f"盘类：{data['panlei']}")

    if data.get("jieqi_pre") or data.get("jieqi_next"):
        lines.append("")
        lines.append(f"{MINOR_RULE} 节气信息 {MINOR_RULE}")
        if data.get("jieqi_pre"):
            lines.append(f"上一节气：{data['jieqi_pre']}")
        if data.get("jieqi_next"):
            lines.append(f"下一节气：{data['jieqi_next']}")

    gong_pan = data.get("gong_pan")
    if isinstance(gong_pan, list):
        lines.append("")
        lines.append(f"{MAJOR_RULE} 奇门遁甲宫盘分析 {MAJOR_RULE}")
        for index, pan in enumerate(gong_pan):
            lines.append(f"{MINOR_RULE} {_palace_name(index)}宫 {MINOR_RULE}")
            if not isinstance(pan, dict):
                lines.append(DATA_ERROR)
                continue
            lines += _palace_lines(pan)

    return "\n".join(lines)


def _palace_lines(pan: Dict[str, Any]) -> List[str]:
    lines = [
        f"【神盘】{_get(pan.get('shenpan'), 'bashen') or NO_SPIRIT}",
        f"【天盘】九星：{_get(pan.get('tianpan'), 'jiuxing')} | 三奇六仪：{_get(pan.get('tianpan'), 'sanqiliuyi')}",
        f"【地盘】三奇六仪：{_get(pan.get('dipan'), 'sanqiliuyi')}",
        f"【人盘】八门：{_get(pan.get('renpan'), 'bamen')}",
    ]
    description = pan.get("description")
    if isinstance(description, dict):
        if description.get("gong_ju"):
            lines.append(f"◎ 宫局状态：{description['gong_ju']}")
        if description.get("luo_gong_desc"):
            lines.append(f"◎ 详细解读：{description['luo_gong_desc']}")
    return lines


def build_analysis(data: Dict[str, Any]) -> str:
    """生成简短分析段落，点出值符、值使所落宫位。"""

    zhifu = data.get("zhifu_info")
    if not isinstance(zhifu, dict) or not zhifu.get("zhifu_name"):
        return DEFAULT_ANALYSIS
    head = f"本局值符{_get(zhifu, 'zhifu_name')}星落{_get(zhifu, 'zhifu_luogong')}宫"
    if zhifu.get("zhishi_name"):
        head += f"，值使{_get(zhifu, 'zhishi_name')}落{_get(zhifu, 'zhishi_luogong')}宫"
    return f"{head}，可作为本局用神参照。{DEFAULT_ANALYSIS}"


def build_suggestions(data: Dict[str, Any]) -> List[str]:
    """按固定规则生成 4 条建议。

    第一条看值符是否存在，第二条看遁局字符串里的阴阳（先判“阳”），
    其余两条为固定文本。
    """

    zhifu = data.get("zhifu_info")
    if isinstance(zhifu, dict) and zhifu.get("zhifu_name"):
        first = f"值符{_get(zhifu, 'zhifu_name')}星落{_get(zhifu, 'zhifu_luogong')}宫，可重点参看该宫所示方位与事项"
    else:
        first = SUGGESTION_ASK_AI

    dunju = str(data.get("dunju") or "")
    if "阳" in dunju:
        second = SUGGESTION_YANG
    elif "阴" in dunju:
        second = SUGGESTION_YIN
    else:
        second = SUGGESTION_WATCH

    return [first, second, SUGGESTION_CAUTION, SUGGESTION_SINCERITY]


MOCK_TIANPAN = ("天蓬甲", "天芮乙", "天冲丙", "天辅丁", "天禽戊", "天心己", "天柱庚", "天任辛", "天英壬")
MOCK_DIPAN = ("戊", "己", "庚", "辛", "壬", "癸", "丁", "丙", "乙")
MOCK_RENPAN = ("休门", "死门", "伤门", "杜门", "开门", "惊门", "生门", "景门", "中宫")
MOCK_SHENPAN = ("值符", "腾蛇", "太阴", "六合", "白虎", "玄武", "九地", "九天", "无")


def mock_result(qimen_input: QimenInput) -> QimenResult:
    """上游不可用时使用的固定模拟结果。"""

    gongli = (
        f"{qimen_input.year}-{qimen_input.month:02d}-{qimen_input.day:02d} "
        f"{qimen_input.hours:02d}:{qimen_input.minute:02d}"
    )
    return QimenResult(
        tianpan=MOCK_TIANPAN,
        dipan=MOCK_DIPAN,
        renpan=MOCK_RENPAN,
        shenpan=MOCK_SHENPAN,
        analysis=(
            "根据您提供的时间进行奇门遁甲排盘分析：\n\n"
            "当前时局显示为模拟数据，实际使用时将调用真实API获取准确的排盘结果。\n\n"
            "请注意这是开发测试版本，正式使用前请配置正确的API密钥。"
        ),
        suggestions=(
            "这是模拟建议1：建议在吉时进行重要决策",
            "这是模拟建议2：注意避开不利的方位和时间",
            "这是模拟建议3：可以考虑佩戴相应的吉祥物品",
            "这是模拟建议4：保持积极的心态和行动",
        ),
        basic_info=BasicInfo(
            gongli=gongli,
            nongli="农历时间（模拟）",
            sizhu="四柱信息（模拟）",
            zhifu="值符信息（模拟）",
            zhishi="值使信息（模拟）",
            dunju="遁局信息（模拟）",
        ),
        detailed_info="这是模拟的详细信息，实际使用时将显示完整的奇门遁甲分析内容。",
    )
