"""
营业日与取餐时段排程
计算预订窗口、营业日的15分钟时段列表，以及时段的过去/额满状态

业务规则：
- 营业日前一天 00:00 起开放预订，目标为次日
- 营业日当天也可下单，目标为当天（各时段仍受“已过去”限制）
- 其它日期不开放
- 时段从开店到打烊，每 slot_minutes 一格，首尾都包含

所有时间均为部署时区的本地“墙上时间”（naive datetime），与库中 TIMESTAMP 一致。
"""

from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from ..config.settings import Settings, settings
from ..models.slot import BookingWindow, PickupSlot

WEEKDAY_LABELS = ["一", "二", "三", "四", "五", "六", "日"]


def local_now(timezone: str) -> datetime:
    """部署时区的当前本地时间（去掉时区信息）"""
    return datetime.now(ZoneInfo(timezone)).replace(tzinfo=None)


def parse_hhmm(value: str) -> Optional[time]:
    """解析 HH:MM，格式不对返回 None"""
    try:
        hh, mm = str(value).split(":")
        return time(int(hh), int(mm))
    except (TypeError, ValueError):
        return None


def slot_label(dt: datetime) -> str:
    return dt.strftime("%H:%M")


def to_local_value(dt: datetime) -> str:
    """本地时间戳字符串，例如 2026-01-22T17:45:00"""
    return dt.strftime("%Y-%m-%dT%H:%M:%S")


def parse_local_timestamp(value: str, timezone: Optional[str] = None) -> Optional[datetime]:
    """
    解析取餐时间字符串
    兼容 "YYYY-MM-DD HH:MM:SS" 与 ISO 格式；带时区的值先换算成本地时间
    """
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).strip().replace(" ", "T", 1))
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(ZoneInfo(timezone or settings.timezone)).replace(tzinfo=None)
    return dt


def floor_to_slot(dt: datetime, slot_minutes: int, origin: Optional[time] = None) -> datetime:
    """
    向下取整到时段边界（16:42 -> 16:30）

    边界与 origin（开店时间）对齐，slot_minutes 不整除开店时刻时也落在生成的时段上；
    origin 之前的时间按同一网格取整，最早到当天 00:00。
    """
    total = dt.hour * 60 + dt.minute
    anchor = (origin.hour * 60 + origin.minute) % slot_minutes if origin else 0
    floored = max(0, total - (total - anchor) % slot_minutes)
    return dt.replace(hour=floored // 60, minute=floored % 60, second=0, microsecond=0)


def day_range(service_date: date) -> Tuple[datetime, datetime]:
    """营业日的半开区间 [当日 00:00, 次日 00:00)"""
    start = datetime.combine(service_date, time.min)
    return start, start + timedelta(days=1)


def resolve_booking_window(now: datetime, service_weekdays: Iterable[int]) -> BookingWindow:
    """
    判断当前是否在预订窗口内，并给出本次预订的营业日

    Args:
        now: 本地当前时间
        service_weekdays: 营业日（Python weekday，周一为0）

    Returns:
        BookingWindow: is_open 与 service_date（关闭时为 None）
    """
    weekdays = set(service_weekdays)
    today = now.date()

    # 营业日当天：当天也可下单
    if today.weekday() in weekdays:
        return BookingWindow(is_open=True, service_date=today)

    # 营业日前一天：预订次日
    tomorrow = today + timedelta(days=1)
    if tomorrow.weekday() in weekdays:
        return BookingWindow(is_open=True, service_date=tomorrow)

    return BookingWindow(is_open=False, service_date=None)


def build_slots(
    service_date: date,
    usage_by_slot: Dict[str, int],
    now: datetime,
    *,
    open_time: str,
    close_time: str,
    slot_minutes: int,
    capacity: int,
) -> List[PickupSlot]:
    """
    生成营业日的取餐时段列表

    营业时间配置无效时返回空列表（等同于没有可选时段）。
    只有营业日是今天时，早于 now 的时段才标记为已过去。
    """
    start_t = parse_hhmm(open_time)
    end_t = parse_hhmm(close_time)
    if start_t is None or end_t is None or slot_minutes <= 0 or end_t < start_t:
        return []

    start = datetime.combine(service_date, start_t)
    end = datetime.combine(service_date, end_t)
    is_same_day = service_date == now.date()
    step = timedelta(minutes=slot_minutes)

    slots = []
    current = start
    while current <= end:
        label = slot_label(current)
        used = int(usage_by_slot.get(label, 0) or 0)
        remaining = max(0, capacity - used)
        is_full = remaining <= 0
        is_past = is_same_day and current < now

        slots.append(PickupSlot(
            start=current,
            value=to_local_value(current),
            label=label,
            used_pots=used,
            remaining_pots=remaining,
            is_past=is_past,
            is_full=is_full,
            is_selectable=not is_past and not is_full,
        ))
        current += step
    return slots


def format_pickup_time(dt: Optional[datetime]) -> str:
    """取餐时间显示，例如 2026/01/24（週六）20:30"""
    if dt is None:
        return "-"
    return f"{dt:%Y/%m/%d}（週{WEEKDAY_LABELS[dt.weekday()]}）{dt:%H:%M}"


class ScheduleService:
    """按当前配置计算预订窗口与时段"""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings

    def now(self) -> datetime:
        return local_now(self.config.timezone)

    def booking_window(self, now: datetime) -> BookingWindow:
        return resolve_booking_window(now, self.config.service_weekdays)

    def build_slots(self, service_date: date, usage_by_slot: Dict[str, int],
                    now: datetime) -> List[PickupSlot]:
        return build_slots(
            service_date,
            usage_by_slot,
            now,
            open_time=self.config.service_open_time,
            close_time=self.config.service_close_time,
            slot_minutes=self.config.slot_minutes,
            capacity=self.config.capacity_per_slot,
        )

    def slot_key(self, value) -> Optional[str]:
        """取餐时间 -> 所属时段 HH:MM"""
        dt = value if isinstance(value, datetime) else parse_local_timestamp(value, self.config.timezone)
        if dt is None:
            return None
        return slot_label(self.floor(dt))

    def floor(self, dt: datetime) -> datetime:
        """按开店时间对齐的时段起点"""
        return floor_to_slot(dt, self.config.slot_minutes, parse_hhmm(self.config.service_open_time))

    @staticmethod
    def find_slot(slots: List[PickupSlot], pickup_time: datetime) -> Optional[PickupSlot]:
        """只接受恰好落在时段起点的取餐时间"""
        for slot in slots:
            if slot.start == pickup_time:
                return slot
        return None
