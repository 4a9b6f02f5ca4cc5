from enum import Enum


class ExamType(str, Enum):
    IA1 = "IA1"
    IA2 = "IA2"
    IA3 = "IA3"
    MODEL = "MODEL"
