from rest_framework import serializers
from django.contrib.auth import get_user_model
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import Classroom

User = get_user_model()

class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'role', 'phone_number']
        read_only_fields = ['role']

class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = User
        fields = ['email', 'first_name', 'last_name', 'password']

    def create(self, validated_data):
        # Self-registration only ever creates students; staff accounts are provisioned
        user = User.objects.create_user(
            username=validated_data['email'],
            email=validated_data['email'],
            password=validated_data['password'],
            first_name=validated_data.get('first_name', ''),
            last_name=validated_data.get('last_name', ''),
            role=User.Role.STUDENT,
        )
        return user

class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['role'] = user.role
        return token

    def validate(self, attrs):
        data = super().validate(attrs)
        data['user'] = UserSerializer(self.user).data
        return data

class ClassroomSerializer(serializers.ModelSerializer):
    teacher_email = serializers.CharField(source='teacher.email', read_only=True)
    student_count = serializers.IntegerField(source='students.count', read_only=True)

    class Meta:
        model = Classroom
        fields = ['id', 'name', 'teacher', 'teacher_email', 'student_count', 'created_at']
        read_only_fields = ['teacher', 'created_at']

class AddStudentSerializer(serializers.Serializer):
    studentId = serializers.IntegerField()

    def validate_studentId(self, value):
        student = User.objects.filter(id=value).first()
        if student is None:
            raise serializers.ValidationError("Student not found")
        if student.role != User.Role.STUDENT:
            raise serializers.ValidationError("User must have STUDENT role")
        return student
