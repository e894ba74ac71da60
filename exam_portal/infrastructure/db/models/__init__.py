from .user_model import UserModel
from .exam_model import ExamModel, QuestionModel, ChoiceModel
from .attempt_model import StudentExamModel, StudentAnswerModel
