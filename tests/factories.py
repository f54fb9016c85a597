"""
Answer-record builders for the four modules.
Each make_* returns a fresh dict that scores 100% on its own module.
"""
import copy

from diagnosis.services.module_schema import OTHER_ENGAGEMENT_OPTION


def make_mentor(**overrides):
    data = {
        "step1": {"fullName": "Ana Lima", "professionalTitle": "Mentora de vendas", "yearsOfExperience": 12},
        "step2": {"originStory": "Comecei como SDR", "turningPoint": "Primeiro time próprio"},
        "step3": {"expertiseAreas": ["vendas B2B"], "credentials": "MBA"},
        "step4": {"biggestResult": "R$ 10M em 1 ano", "achievements": "Top 1% da região"},
        "step5": {"values": ["clareza"], "mission": "Formar líderes comerciais"},
        "step6": {"testimonials": [], "hasNoTestimonials": True},
        "step7": {"myDifference": "Método prático", "marketStandard": "Teoria genérica"},
    }
    data.update(copy.deepcopy(overrides))
    return data


def make_mentee_without_clients(**overrides):
    data = {
        "hasClients": "no",
        "demographics": {
            "ageRange": {"min": 25, "max": 45},
            "gender": "feminino",
            "location": "São Paulo",
            "education": "superior",
            "income": "R$ 10k",
            "role": {"title": "Gerente comercial", "area": ""},
            "digitalPresence": {"platforms": ["instagram"], "hoursPerDay": 2, "behavior": ""},
        },
        "transformation": {"currentState": "Vende sem processo", "desiredState": "Time previsível"},
        "decisionMountain": {"pains": "Meta", "objections": "Preço", "triggers": "Promoção"},
        "consumptionJourney": {"steps": ["descoberta"]},
        "icpTarget": {"description": "Gestores de PMEs"},
    }
    data.update(copy.deepcopy(overrides))
    return data


def make_method_structured(**overrides):
    data = {
        "stage": "structured",
        "name": "Método Prosperar",
        "transformation": "De vendedor a gestor",
        "pillars": [
            {"id": str(i), "title": f"Pilar {i}", "description": f"Descrição {i}"}
            for i in range(1, 4)
        ],
    }
    data.update(copy.deepcopy(overrides))
    return data


def make_delivery(**overrides):
    data = {
        "format": {"duration": "6 meses", "modality": "online"},
        "mandatory": {
            "onlineEngagement": ["WhatsApp"],
            "otherEngagementText": "",
            "meetingFormat": "Zoom",
            "frequency": "semanal",
        },
        "overdelivery": {
            "hasIndividual": "no",
            "individualDetails": "",
            "frequency": "",
            "accelerators": [{"id": "1", "name": "Bônus", "description": "Planilha de metas"}],
        },
    }
    data.update(copy.deepcopy(overrides))
    return data


def make_full_form():
    return {
        "mentor": make_mentor(),
        "mentee": make_mentee_without_clients(),
        "method": make_method_structured(),
        "delivery": make_delivery(),
    }


def make_delivery_with_other(text=""):
    delivery = make_delivery()
    delivery["mandatory"]["onlineEngagement"] = ["WhatsApp", OTHER_ENGAGEMENT_OPTION]
    delivery["mandatory"]["otherEngagementText"] = text
    return delivery
